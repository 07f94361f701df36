"""Stripe implementation of the payment gateway."""

from .payment import StripePaymentGateway

__all__ = ["StripePaymentGateway"]
