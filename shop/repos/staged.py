"""
Unit of work that stages writes and applies them on commit.

Every entity repository handed out by a StagedUnitOfWork reads committed
rows from a RowStore and stages its writes on the unit of work. ``commit``
replays the staged writes against the RowStore in order; ``rollback`` drops
them. Backends (memory, Minio) only implement RowStore.

Rows are stored as the entity's JSON dump without its related entities
(``Product.category``, ``OrderDetail.product``); see ``row_json``.
"""

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Protocol,
    Set,
    Type,
    TypeVar,
    runtime_checkable,
)

from pydantic import BaseModel

from shop.domain import (
    Category,
    OrderDetail,
    OrderHeader,
    OrderStatus,
    PaymentStatus,
    Product,
)
from shop.errors import NotFoundError
from shop.repositories import (
    CategoryRepository,
    OrderDetailRepository,
    OrderHeaderRepository,
    ProductRepository,
    UnitOfWork,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

CATEGORIES = "categories"
PRODUCTS = "products"
ORDER_HEADERS = "order_headers"
ORDER_DETAILS = "order_details"

# Related entities attached by include_related loads, never part of a row.
RELATED_FIELDS: Dict[str, Set[str]] = {
    PRODUCTS: {"category"},
    ORDER_DETAILS: {"product"},
}


def row_json(table: str, entity: BaseModel) -> str:
    """Serialize ``entity`` as a stored row of ``table``."""
    return entity.model_dump_json(exclude=RELATED_FIELDS.get(table))


@runtime_checkable
class RowStore(Protocol):
    """Committed rows of every table, keyed by integer id."""

    async def load(self, table: str, model: Type[T]) -> List[T]:
        """Return all rows of ``table`` as fresh model instances."""
        ...

    async def get(
        self, table: str, model: Type[T], entity_id: int
    ) -> Optional[T]:
        ...

    async def write(self, table: str, entity: BaseModel) -> None:
        """Insert or replace the row with ``entity.id``."""
        ...

    async def remove(self, table: str, entity_id: int) -> None:
        """Delete a row; missing rows are ignored."""
        ...

    async def next_id(self, table: str) -> int:
        """Return a fresh id for ``table``; ids are never handed out twice."""
        ...


@dataclass
class StagedChange:
    kind: str  # "write", "remove" or "patch"
    table: str
    entity_id: int
    entity: Optional[BaseModel] = None
    model: Optional[Type[BaseModel]] = None
    changes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind not in ("write", "remove", "patch"):
            raise ValueError(f"Unknown staged change kind: {self.kind!r}")
        if self.kind == "write" and self.entity is None:
            raise ValueError(f"Staged write to {self.table} has no entity")
        if self.kind == "patch" and self.model is None:
            raise ValueError(f"Staged patch of {self.table} has no model")


class StagedRepository(Generic[T]):
    """EntityRepository implementation shared by all entity types."""

    table: str
    model: Type[T]

    def __init__(self, uow: "StagedUnitOfWork") -> None:
        self._uow = uow

    async def get_all(
        self,
        predicate: Optional[Callable[[T], bool]] = None,
        include_related: bool = False,
    ) -> List[T]:
        entities = await self._uow.store.load(self.table, self.model)
        if predicate is not None:
            entities = [e for e in entities if predicate(e)]
        if include_related and entities:
            await self._attach_related(entities)
        return entities

    async def get_one(
        self,
        predicate: Callable[[T], bool],
        include_related: bool = False,
    ) -> Optional[T]:
        entities = await self._uow.store.load(self.table, self.model)
        for entity in entities:
            if predicate(entity):
                if include_related:
                    await self._attach_related([entity])
                return entity
        return None

    async def add(self, entity: T) -> T:
        if entity.id == 0:  # type: ignore[attr-defined]
            entity.id = await self._uow.reserve_id(self.table)  # type: ignore[attr-defined]
        self._uow.stage(
            StagedChange(
                kind="write",
                table=self.table,
                entity_id=entity.id,  # type: ignore[attr-defined]
                entity=entity.model_copy(deep=True),
            )
        )
        return entity

    async def update(self, entity: T) -> None:
        if entity.id == 0:  # type: ignore[attr-defined]
            raise ValueError(
                f"Cannot update {self.model.__name__} without an id"
            )
        self._uow.stage(
            StagedChange(
                kind="write",
                table=self.table,
                entity_id=entity.id,  # type: ignore[attr-defined]
                entity=entity.model_copy(deep=True),
            )
        )

    async def delete(self, entity: T) -> None:
        self._uow.stage(
            StagedChange(
                kind="remove",
                table=self.table,
                entity_id=entity.id,  # type: ignore[attr-defined]
            )
        )

    async def _attach_related(self, entities: List[T]) -> None:
        return None


class StagedCategoryRepository(StagedRepository[Category], CategoryRepository):
    table = CATEGORIES
    model = Category


class StagedProductRepository(StagedRepository[Product], ProductRepository):
    table = PRODUCTS
    model = Product

    async def _attach_related(self, entities: List[Product]) -> None:
        categories = {
            c.id: c for c in await self._uow.store.load(CATEGORIES, Category)
        }
        for product in entities:
            product.category = categories.get(product.category_id)


class StagedOrderHeaderRepository(
    StagedRepository[OrderHeader], OrderHeaderRepository
):
    table = ORDER_HEADERS
    model = OrderHeader

    async def update_status(
        self,
        order_id: int,
        order_status: OrderStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> None:
        if await self._uow.store.get(self.table, self.model, order_id) is None:
            raise NotFoundError("OrderHeader", order_id)
        changes: Dict[str, Any] = {"order_status": order_status}
        if payment_status is not None:
            changes["payment_status"] = payment_status
        self._uow.stage(
            StagedChange(
                kind="patch",
                table=self.table,
                entity_id=order_id,
                model=self.model,
                changes=changes,
            )
        )


class StagedOrderDetailRepository(
    StagedRepository[OrderDetail], OrderDetailRepository
):
    table = ORDER_DETAILS
    model = OrderDetail

    async def _attach_related(self, entities: List[OrderDetail]) -> None:
        products = {
            p.id: p for p in await self._uow.store.load(PRODUCTS, Product)
        }
        for detail in entities:
            detail.product = products.get(detail.product_id)


class StagedUnitOfWork(UnitOfWork):
    """
    UnitOfWork over a RowStore.

    Created per request. Reads always see committed rows; staged writes are
    applied by ``commit`` in the order they were made. The RowStore decides
    how atomic a commit is.
    """

    def __init__(self, store: RowStore) -> None:
        self.store = store
        self._staged: List[StagedChange] = []
        self._reserved_ids: Dict[str, int] = {}
        self._category = StagedCategoryRepository(self)
        self._product = StagedProductRepository(self)
        self._order_header = StagedOrderHeaderRepository(self)
        self._order_detail = StagedOrderDetailRepository(self)

    @property
    def category(self) -> StagedCategoryRepository:
        return self._category

    @property
    def product(self) -> StagedProductRepository:
        return self._product

    @property
    def order_header(self) -> StagedOrderHeaderRepository:
        return self._order_header

    @property
    def order_detail(self) -> StagedOrderDetailRepository:
        return self._order_detail

    @property
    def pending_changes(self) -> int:
        return len(self._staged)

    def stage(self, change: StagedChange) -> None:
        logger.debug(
            "Staging change",
            extra={
                "kind": change.kind,
                "table": change.table,
                "entity_id": change.entity_id,
            },
        )
        self._staged.append(change)

    async def reserve_id(self, table: str) -> int:
        """Hand out ids that are unique across committed and staged rows."""
        candidate = await self.store.next_id(table)
        entity_id = max(candidate, self._reserved_ids.get(table, 0) + 1)
        self._reserved_ids[table] = entity_id
        return entity_id

    async def commit(self) -> None:
        staged, self._staged = self._staged, []
        self._reserved_ids = {}
        logger.debug(
            "Committing unit of work", extra={"change_count": len(staged)}
        )
        for change in staged:
            if change.kind == "write":
                if change.entity is None:
                    raise ValueError(
                        f"Staged write to {change.table} has no entity"
                    )
                await self.store.write(change.table, change.entity)
            elif change.kind == "remove":
                await self.store.remove(change.table, change.entity_id)
            elif change.kind == "patch":
                if change.model is None:
                    raise ValueError(
                        f"Staged patch of {change.table} has no model"
                    )
                current = await self.store.get(
                    change.table, change.model, change.entity_id
                )
                if current is None:
                    raise NotFoundError(change.model.__name__, change.entity_id)
                await self.store.write(
                    change.table, current.model_copy(update=change.changes)
                )
        logger.info(
            "Unit of work committed", extra={"change_count": len(staged)}
        )

    async def rollback(self) -> None:
        if self._staged:
            logger.info(
                "Rolling back unit of work",
                extra={"change_count": len(self._staged)},
            )
        self._staged = []
        self._reserved_ids = {}
