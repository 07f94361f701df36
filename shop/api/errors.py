"""
Translation of use case exceptions into HTTP errors.
"""

import logging

from fastapi import HTTPException
from pydantic import ValidationError

from shop.errors import (
    CategoryInUseError,
    InvalidOrderTransitionError,
    NotFoundError,
    PaymentGatewayError,
    ShopError,
    StoreError,
    ValidationFailedError,
)
from shop.validation import error_details
from util.errors import FileStorageError

logger = logging.getLogger(__name__)

STATUS_CODES = {
    NotFoundError: 404,
    InvalidOrderTransitionError: 409,
    CategoryInUseError: 409,
    PaymentGatewayError: 502,
    StoreError: 503,
    FileStorageError: 503,
}


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """
    Map an exception raised while performing ``action`` to an HTTPException.

    Expected failures keep their message. Anything else is logged with its
    traceback and reported as a generic 500.
    """
    if isinstance(error, ValidationFailedError):
        return HTTPException(
            status_code=400,
            detail={"message": error.message, "errors": error.errors},
        )
    if isinstance(error, ValidationError):
        # Path values the view models reject, such as a negative id
        logger.info(
            "Request data rejected",
            extra={"action": action, "error_message": str(error)},
        )
        return HTTPException(
            status_code=400,
            detail={"message": "Model is invalid", "errors": error_details(error)},
        )
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            logger.info(
                "Request failed",
                extra={
                    "action": action,
                    "status_code": status_code,
                    "error_type": type(error).__name__,
                    "error_message": str(error),
                },
            )
            return HTTPException(status_code=status_code, detail=str(error))

    logger.error(
        "Unexpected error",
        exc_info=error,
        extra={
            "action": action,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )
    detail = f"Failed to {action} due to an internal error."
    if isinstance(error, ShopError):
        detail = str(error)
    return HTTPException(status_code=500, detail=detail)
