"""
Repository interfaces defined as Protocols.

All repository operations in this module follow these principles:

- **Unit of Work**: Entity repositories never persist on their own. Writes
  (add, update, delete, update_status) are staged on the unit of work that
  owns the repository and become visible to readers only after
  ``UnitOfWork.commit()``. ``rollback()`` discards staged writes.

- **Committed Reads**: Reads return copies of committed state. Mutating a
  returned entity has no effect until it is passed back through ``update``
  and committed.

- **Domain Objects**: Methods accept and return domain objects or primitives,
  never framework-specific types.

Architectural Notes:

- These are pure interfaces with no implementation details
- Use case classes depend on these protocols, not concrete implementations
- One generic EntityRepository protocol covers the CRUD shared by every
  entity; entity-specific protocols add only what differs
"""

from typing import (
    Callable,
    List,
    Optional,
    Protocol,
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
    RefundPaymentArgs,
    RefundPaymentOutcome,
)

T = TypeVar("T", bound=BaseModel)


@runtime_checkable
class EntityRepository(Protocol[T]):
    """Generic store accessor for one entity type.

    Type Parameter:
        T: The domain entity type (must extend Pydantic BaseModel)
    """

    async def get_all(
        self,
        predicate: Optional[Callable[[T], bool]] = None,
        include_related: bool = False,
    ) -> List[T]:
        """Return every committed entity, optionally filtered.

        Args:
            predicate: Optional filter applied to each entity
            include_related: Populate related entities (e.g. a product's
                category) on the returned objects

        Returns:
            List of entities; empty when there are none, never None
        """
        ...

    async def get_one(
        self,
        predicate: Callable[[T], bool],
        include_related: bool = False,
    ) -> Optional[T]:
        """Return the first committed entity matching ``predicate``.

        Returns:
            The entity if found, None otherwise (missing entities are not an
            error at this layer)
        """
        ...

    async def add(self, entity: T) -> T:
        """Stage a new entity.

        An entity whose id is 0 is assigned the next free id before this
        method returns, so callers can reference it before commit.
        """
        ...

    async def update(self, entity: T) -> None:
        """Stage a full replacement of a stored entity."""
        ...

    async def delete(self, entity: T) -> None:
        """Stage removal of a stored entity."""
        ...


@runtime_checkable
class CategoryRepository(EntityRepository[Category], Protocol):
    """Store accessor for catalog categories."""

    pass


@runtime_checkable
class ProductRepository(EntityRepository[Product], Protocol):
    """Store accessor for products.

    ``include_related`` populates ``Product.category``.
    """

    pass


@runtime_checkable
class OrderHeaderRepository(EntityRepository[OrderHeader], Protocol):
    """Store accessor for order headers."""

    async def update_status(
        self,
        order_id: int,
        order_status: OrderStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> None:
        """Stage a status-only change for an order.

        Args:
            order_id: Id of the stored order header
            order_status: New order status
            payment_status: New payment status, left unchanged when None

        Implementation Notes:
        - Only the status columns change; every other field of the stored
          header is preserved
        - Must be idempotent: staging the same status twice is safe
        """
        ...


@runtime_checkable
class OrderDetailRepository(EntityRepository[OrderDetail], Protocol):
    """Store accessor for order detail lines.

    ``include_related`` populates ``OrderDetail.product``.
    """

    pass


@runtime_checkable
class UnitOfWork(Protocol):
    """Transactional boundary shared by all entity repositories.

    A unit of work is created per request. Every repository it exposes stages
    writes on it; ``commit`` persists them all, in the order they were
    staged.
    """

    @property
    def category(self) -> CategoryRepository: ...

    @property
    def product(self) -> ProductRepository: ...

    @property
    def order_header(self) -> OrderHeaderRepository: ...

    @property
    def order_detail(self) -> OrderDetailRepository: ...

    async def commit(self) -> None:
        """Persist all staged writes.

        Raises:
            StoreError: If the underlying store rejects a write
        """
        ...

    async def rollback(self) -> None:
        """Discard all staged writes. Safe to call when nothing is staged."""
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Client for the remote payment processor.

    Architectural Context:
    The payment processor is an opaque remote service. Implementations wrap
    its SDK (Stripe) or simulate it (memory). They report processor-side
    rejections and transport failures as a failed outcome rather than
    raising, so the use case decides what a failure means for the order.
    """

    async def refund_payment(
        self, args: RefundPaymentArgs
    ) -> RefundPaymentOutcome:
        """Refund the payment captured for a payment intent.

        Args:
            args: RefundPaymentArgs containing order_id, payment_intent_id
                and reason.

        Returns:
            RefundPaymentOutcome indicating success ('refunded') or failure
            ('failed') with a reason.

        Implementation Notes:

        - Must be idempotent: refunding the same payment intent again
          returns the original refund instead of creating a second one.
        - May interact with external payment gateways.
        """
        ...
