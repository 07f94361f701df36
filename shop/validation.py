"""
Runtime validation utilities for ensuring architectural contracts and data
integrity.

This module provides functions to validate:

- Repository implementations against their defined Protocols using @runtime_checkable.
- Dictionary data against Pydantic domain models.

It leverages Python's built-in `isinstance()` with `@runtime_checkable`
for protocol validation, and Pydantic for data validation. The goal is to
catch configuration and data errors early at critical application
boundaries.
"""

from typing import Any, Dict, List, Type, TypeVar, Union
from pydantic import BaseModel, ValidationError
import logging

logger = logging.getLogger(__name__)

P = TypeVar("P")
M = TypeVar("M", bound=BaseModel)


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


class DomainValidationError(Exception):
    """Raised when domain model validation fails"""

    def __init__(self, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that a repository implementation satisfies a protocol contract.

    Args:
        repository: The repository implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails

    Example:
        >>> from shop.repos.memory.unit_of_work import MemoryUnitOfWork
        >>> from shop.repositories import UnitOfWork
        >>> validate_repository_protocol(MemoryUnitOfWork(), UnitOfWork)
    """
    logger.debug(
        "Validating repository protocol",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )

    if not isinstance(repository, protocol):
        error_message = (
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )

        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )

        raise RepositoryValidationError(error_message)

    logger.debug(
        "Repository protocol validation passed",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return a repository with proper type annotation.

    This provides both runtime validation and static type checking benefits.

    Raises:
        RepositoryValidationError: If validation fails
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def error_details(error: ValidationError) -> List[Dict[str, Any]]:
    """Return the errors of a pydantic ValidationError as JSON-safe dicts."""
    # ctx may hold exception objects; keep only JSON-safe keys
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in error.errors()
    ]


def validate_domain_model(
    data: Union[Dict[str, Any], BaseModel], model_class: Type[M]
) -> M:
    """
    Validate and convert data to a domain model using Pydantic.

    Model instances are re-validated from their dumped state, so an instance
    built with ``model_construct`` or mutated after construction is checked
    as strictly as a plain dictionary.

    Args:
        data: Dictionary data or model instance to validate
        model_class: Pydantic model class to validate against

    Returns:
        Validated domain model instance

    Raises:
        DomainValidationError: If validation fails

    Example:
        >>> from shop.domain import Category
        >>> category = validate_domain_model({"name": "Books"}, Category)
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=False)

    logger.debug(
        "Validating domain model",
        extra={
            "model_class": model_class.__name__,
            "data_keys": (
                list(data.keys()) if isinstance(data, dict) else "not_dict"
            ),
        },
    )

    try:
        return model_class.model_validate(data)

    except ValidationError as e:
        error_message = (
            f"Domain model validation failed for {model_class.__name__}: {e}"
        )
        errors = error_details(e)

        logger.warning(
            "Domain model validation failed",
            extra={
                "model_class": model_class.__name__,
                "validation_errors": errors,
            },
        )

        raise DomainValidationError(error_message, errors=errors) from e


# Convenience functions for common validation patterns
def ensure_unit_of_work(uow: object) -> Any:
    """Ensure an object satisfies the UnitOfWork protocol"""
    from shop.repositories import UnitOfWork

    return ensure_repository_protocol(uow, UnitOfWork)  # type: ignore[type-abstract]


def ensure_payment_gateway(gateway: object) -> Any:
    """Ensure an object satisfies the PaymentGateway protocol"""
    from shop.repositories import PaymentGateway

    return ensure_repository_protocol(gateway, PaymentGateway)  # type: ignore[type-abstract]


def ensure_file_storage_repository(repo: object) -> Any:
    """Ensure an object satisfies the FileStorageRepository protocol"""
    from util.repositories import FileStorageRepository

    return ensure_repository_protocol(repo, FileStorageRepository)  # type: ignore[type-abstract]
