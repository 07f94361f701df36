"""In-memory implementations of shop repositories."""

from .payment import MemoryPaymentGateway
from .unit_of_work import MemoryDatabase, MemoryUnitOfWork

__all__ = ["MemoryDatabase", "MemoryUnitOfWork", "MemoryPaymentGateway"]
