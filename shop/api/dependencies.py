"""
Dependency injection for FastAPI endpoints.

Long-lived clients (the row store, the image store, the payment gateway) are
singletons held by the DependencyContainer. A unit of work, and the use
cases built on it, are created per request.
"""

import logging
from typing import Any, Dict

from fastapi import Depends

from shop.config import ShopSettings, load_settings
from shop.repos.memory.payment import MemoryPaymentGateway
from shop.repos.memory.unit_of_work import MemoryDatabase, MemoryUnitOfWork
from shop.repos.minio.unit_of_work import MinioRowStore, MinioUnitOfWork
from shop.repos.staged import RowStore, StagedUnitOfWork
from shop.repos.stripe.payment import StripePaymentGateway
from shop.repositories import PaymentGateway, UnitOfWork
from shop.usecase import CatalogAdminUseCase, OrderWorkflowUseCase
from util.repos.local.file_storage import LocalFileStorageRepository
from util.repos.minio.file_storage import MinioFileStorageRepository
from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)


def build_row_store(settings: ShopSettings) -> RowStore:
    """Create the row store selected by SHOP_STORE_BACKEND."""
    if settings.store_backend == "minio":
        logger.debug(
            "Creating Minio row store",
            extra={
                "minio_endpoint": settings.minio_endpoint,
                "bucket_prefix": settings.bucket_prefix,
            },
        )
        return MinioRowStore(
            endpoint=settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
            bucket_prefix=settings.bucket_prefix,
        )
    logger.debug("Creating memory row store")
    return MemoryDatabase()


def build_unit_of_work(store: RowStore) -> StagedUnitOfWork:
    if isinstance(store, MinioRowStore):
        return MinioUnitOfWork(store)
    if isinstance(store, MemoryDatabase):
        return MemoryUnitOfWork(store)
    return StagedUnitOfWork(store)


def build_file_storage(settings: ShopSettings) -> FileStorageRepository:
    """Create the image store selected by SHOP_IMAGE_STORE."""
    if settings.image_store == "minio":
        return MinioFileStorageRepository(
            endpoint=settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
            bucket_name=f"{settings.bucket_prefix}-product-images",
            url_prefix=settings.image_url_prefix,
        )
    return LocalFileStorageRepository(
        root_dir=settings.image_dir, url_prefix=settings.image_url_prefix
    )


def build_payment_gateway(settings: ShopSettings) -> PaymentGateway:
    """Create the payment gateway selected by SHOP_PAYMENT_GATEWAY."""
    if settings.payment_gateway == "stripe":
        if settings.stripe_api_key is None:
            raise ValueError(
                "STRIPE_API_KEY must be set when SHOP_PAYMENT_GATEWAY=stripe"
            )
        return StripePaymentGateway(api_key=settings.stripe_api_key)
    logger.warning(
        "Using memory payment gateway, refunds are simulated"
    )
    return MemoryPaymentGateway()


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = factory()
        return self._instances[key]

    def reset(self) -> None:
        self._instances.clear()

    def get_settings(self) -> ShopSettings:
        return self.get_or_create("settings", load_settings)  # type: ignore[no-any-return]

    def get_row_store(self) -> RowStore:
        return self.get_or_create(  # type: ignore[no-any-return]
            "row_store", lambda: build_row_store(self.get_settings())
        )

    def get_file_storage(self) -> FileStorageRepository:
        return self.get_or_create(  # type: ignore[no-any-return]
            "file_storage", lambda: build_file_storage(self.get_settings())
        )

    def get_payment_gateway(self) -> PaymentGateway:
        return self.get_or_create(  # type: ignore[no-any-return]
            "payment_gateway",
            lambda: build_payment_gateway(self.get_settings()),
        )


# Global container instance
_container = DependencyContainer()


async def get_row_store() -> RowStore:
    """FastAPI dependency for the shared row store."""
    return _container.get_row_store()


async def get_unit_of_work(
    store: RowStore = Depends(get_row_store),
) -> UnitOfWork:
    """FastAPI dependency for a per-request unit of work."""
    return build_unit_of_work(store)


async def get_file_storage_repository() -> FileStorageRepository:
    """FastAPI dependency for the product image store."""
    return _container.get_file_storage()


async def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency for the payment gateway."""
    return _container.get_payment_gateway()


async def get_order_workflow_use_case(
    unit_of_work: UnitOfWork = Depends(get_unit_of_work),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> OrderWorkflowUseCase:
    """FastAPI dependency for OrderWorkflowUseCase."""
    return OrderWorkflowUseCase(
        unit_of_work=unit_of_work, payment_gateway=payment_gateway
    )


async def get_catalog_admin_use_case(
    unit_of_work: UnitOfWork = Depends(get_unit_of_work),
    file_storage: FileStorageRepository = Depends(
        get_file_storage_repository
    ),
) -> CatalogAdminUseCase:
    """FastAPI dependency for CatalogAdminUseCase."""
    return CatalogAdminUseCase(
        unit_of_work=unit_of_work, file_storage=file_storage
    )
