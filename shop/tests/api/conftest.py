from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fastapi_pagination import add_pagination

from shop.api.dependencies import (
    get_file_storage_repository,
    get_payment_gateway,
    get_unit_of_work,
)
from shop.api.routers import categories, orders, products
from shop.repos.memory.payment import MemoryPaymentGateway
from shop.repos.memory.unit_of_work import MemoryDatabase, MemoryUnitOfWork
from util.repos.local.file_storage import LocalFileStorageRepository


@pytest.fixture
def app(
    database: MemoryDatabase,
    file_storage: LocalFileStorageRepository,
    payment_gateway: MemoryPaymentGateway,
) -> FastAPI:
    """Create FastAPI app with the shop routers over memory backends."""
    app = FastAPI()

    # A fresh unit of work per request over the shared test database
    app.dependency_overrides[get_unit_of_work] = lambda: MemoryUnitOfWork(
        database
    )
    app.dependency_overrides[get_file_storage_repository] = (
        lambda: file_storage
    )
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    # Add pagination support (required for the paginate function)
    add_pagination(app)

    app.include_router(categories.router, prefix="/categories")
    app.include_router(products.router, prefix="/products")
    app.include_router(orders.router, prefix="/orders")
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client
