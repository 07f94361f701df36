import pytest
from typing import Any
from unittest.mock import MagicMock

from shop.repos.memory.payment import MemoryPaymentGateway
from shop.repos.memory.unit_of_work import MemoryDatabase, MemoryUnitOfWork
from shop.tests.mocks import (
    make_mock_file_storage,
    make_mock_payment_gateway,
    make_mock_unit_of_work,
)
from util.repos.local.file_storage import LocalFileStorageRepository


@pytest.fixture
def mock_unit_of_work() -> MagicMock:
    return make_mock_unit_of_work()


@pytest.fixture
def mock_payment_gateway() -> MagicMock:
    return make_mock_payment_gateway()


@pytest.fixture
def mock_file_storage() -> MagicMock:
    return make_mock_file_storage()


@pytest.fixture
def database() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def unit_of_work(database: MemoryDatabase) -> MemoryUnitOfWork:
    return MemoryUnitOfWork(database)


@pytest.fixture
def payment_gateway() -> MemoryPaymentGateway:
    return MemoryPaymentGateway()


@pytest.fixture
def file_storage(tmp_path: Any) -> LocalFileStorageRepository:
    return LocalFileStorageRepository(root_dir=tmp_path / "ProductImage")
