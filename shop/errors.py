"""
Exceptions raised by the shop use cases and repositories.

Use cases raise these; outer layers (API, CLI) translate them into status
codes or exit codes. Anything that is not a ``ShopError`` is unexpected.
"""

from typing import Any, Dict, List, Optional

from util.errors import FileStorageError


class ShopError(Exception):
    """Base class for expected failures."""

    pass


class NotFoundError(ShopError):
    """Raised when a referenced entity id does not exist"""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")


class ValidationFailedError(ShopError):
    """Raised when input fails validation, before any store mutation"""

    def __init__(
        self,
        message: str = "Model is invalid",
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class InvalidOrderTransitionError(ShopError):
    """Raised when an order cannot move to the requested status"""

    pass


class CategoryInUseError(ShopError):
    """Raised when deleting a category that products still reference"""

    pass


class PaymentGatewayError(ShopError):
    """Raised when the payment gateway rejects or fails a call"""

    pass


class StoreError(ShopError):
    """Raised when the entity store is unreachable or rejects a write"""

    pass


__all__ = [
    "ShopError",
    "NotFoundError",
    "ValidationFailedError",
    "InvalidOrderTransitionError",
    "CategoryInUseError",
    "PaymentGatewayError",
    "StoreError",
    "FileStorageError",
]
