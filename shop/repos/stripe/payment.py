"""
Stripe implementation of PaymentGateway.
"""

import logging
from typing import Optional

import stripe

from shop.domain import RefundPaymentArgs, RefundPaymentOutcome
from shop.repositories import PaymentGateway

logger = logging.getLogger(__name__)

REFUND_REASON = "requested_by_customer"


class StripePaymentGateway(PaymentGateway):
    """
    PaymentGateway backed by the Stripe Refunds API.

    Refunds are created with an idempotency key derived from the payment
    intent, so a retried cancellation cannot refund the same charge twice.
    """

    def __init__(self, api_key: str, stripe_account: Optional[str] = None):
        if not api_key:
            raise ValueError("Stripe API key is required")
        logger.debug(
            "Initializing StripePaymentGateway",
            extra={"stripe_account": stripe_account},
        )
        self.api_key = api_key
        self.stripe_account = stripe_account

    @staticmethod
    def idempotency_key(payment_intent_id: str) -> str:
        return f"refund-{payment_intent_id}"

    async def refund_payment(
        self, args: RefundPaymentArgs
    ) -> RefundPaymentOutcome:
        logger.info(
            "Requesting Stripe refund",
            extra={
                "order_id": args.order_id,
                "payment_intent_id": args.payment_intent_id,
            },
        )
        try:
            refund = stripe.Refund.create(
                payment_intent=args.payment_intent_id,
                reason=REFUND_REASON,
                metadata={"order_id": str(args.order_id)},
                api_key=self.api_key,
                stripe_account=self.stripe_account,
                idempotency_key=self.idempotency_key(args.payment_intent_id),
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe refund request failed",
                extra={
                    "order_id": args.order_id,
                    "payment_intent_id": args.payment_intent_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return RefundPaymentOutcome(
                status="failed",
                reason=getattr(e, "user_message", None) or str(e),
            )

        if refund.status in ("failed", "canceled"):
            logger.warning(
                "Stripe refund was not accepted",
                extra={
                    "order_id": args.order_id,
                    "refund_id": refund.id,
                    "refund_status": refund.status,
                },
            )
            return RefundPaymentOutcome(
                status="failed",
                refund_id=refund.id,
                reason=f"Refund {refund.id} is {refund.status}",
            )

        logger.info(
            "Stripe refund created",
            extra={
                "order_id": args.order_id,
                "refund_id": refund.id,
                "refund_status": refund.status,
            },
        )
        return RefundPaymentOutcome(status="refunded", refund_id=refund.id)
