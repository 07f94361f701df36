"""
Domain models defined as Pydantic models.
These are pure data structures with validation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    IN_PROCESS = "Processing"
    SHIPPED = "Shipped"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    DELAYED_PAYMENT = "ApprovedForDelayedPayment"
    REJECTED = "Rejected"
    REFUNDED = "Refunded"
    CANCELLED = "Cancelled"


# Target status -> statuses it may be entered from.
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.IN_PROCESS: frozenset(
        {OrderStatus.PENDING, OrderStatus.APPROVED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.IN_PROCESS}),
    OrderStatus.CANCELLED: frozenset(
        {OrderStatus.PENDING, OrderStatus.APPROVED, OrderStatus.IN_PROCESS}
    ),
}

# Values accepted by the order list filter, mapped to the statuses they select.
ORDER_STATUS_FILTERS: Dict[str, Optional[FrozenSet[OrderStatus]]] = {
    "all": None,
    "pending": frozenset({OrderStatus.PENDING}),
    "approved": frozenset({OrderStatus.APPROVED}),
    "inprocess": frozenset({OrderStatus.IN_PROCESS}),
    "shipped": frozenset({OrderStatus.SHIPPED}),
    "cancelled": frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
}


class Category(BaseModel):
    id: int = Field(default=0, ge=0)
    name: str
    display_order: int = Field(default=1, ge=1, le=100)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        if len(v) > 50:
            raise ValueError("Name must be at most 50 characters")
        return v


class Product(BaseModel):
    id: int = Field(default=0, ge=0)
    name: str
    description: str = ""
    price: Decimal
    category_id: int
    image_url: Optional[str] = None
    # Related entity, populated by include_related loads and not stored.
    category: Optional[Category] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be positive")
        return v

    @field_validator("category_id")
    @classmethod
    def category_must_be_selected(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Category is required")
        return v


class OrderHeader(BaseModel):
    id: int = Field(default=0, ge=0)
    user_id: Optional[str] = None
    order_date: datetime = Field(default_factory=_utcnow)
    shipping_date: Optional[datetime] = None
    order_total: Decimal = Decimal("0")
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_due_date: Optional[date] = None
    session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    @field_validator("order_total")
    @classmethod
    def order_total_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Order total must not be negative")
        return v

    def can_transition_to(self, target: OrderStatus) -> bool:
        return self.order_status in ORDER_TRANSITIONS.get(target, frozenset())


class OrderDetail(BaseModel):
    id: int = Field(default=0, ge=0)
    order_header_id: int
    product_id: int
    count: int = 1
    price: Decimal = Decimal("0")
    # Related entity, populated by include_related loads and not stored.
    product: Optional[Product] = None

    @field_validator("count")
    @classmethod
    def count_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Count must be positive")
        return v

    @field_validator("price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price must not be negative")
        return v


class OrderVM(BaseModel):
    """One order header with its detail lines. Built per request, not stored."""

    order_header: OrderHeader
    order_details: List[OrderDetail] = Field(default_factory=list)


class ProductVM(BaseModel):
    """Product edit form: the product (if any) and the category choices."""

    product: Optional[Product] = None
    categories: List[Category] = Field(default_factory=list)


class RefundPaymentArgs(BaseModel):
    """Arguments for refunding a captured payment."""

    order_id: int
    payment_intent_id: str
    reason: Optional[str] = None

    @field_validator("payment_intent_id")
    @classmethod
    def payment_intent_id_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Payment intent id must not be empty")
        return v


class RefundPaymentOutcome(BaseModel):
    """Result of a payment refund attempt."""

    status: Literal["refunded", "failed"]
    refund_id: Optional[str] = Field(default=None, validate_default=True)
    reason: Optional[str] = None

    @field_validator("refund_id")
    @classmethod
    def refund_id_must_be_present_if_refunded(
        cls, v: Optional[str], info
    ) -> Optional[str]:
        if info.data.get("status") == "refunded" and v is None:
            raise ValueError(
                "Refund ID must be present if status is 'refunded'"
            )
        return v


class OrderStatusOutcome(BaseModel):
    """Result of an order status transition."""

    order_id: int
    order_status: OrderStatus
    payment_status: PaymentStatus
    refund_id: Optional[str] = None


class DeleteResult(BaseModel):
    success: bool
    message: str
