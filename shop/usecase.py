"""
usecase logic must be clean, without direct dependencies.
dependencies are injected via repository instances.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from shop.domain import (
    ORDER_STATUS_FILTERS,
    Category,
    DeleteResult,
    OrderHeader,
    OrderStatus,
    OrderStatusOutcome,
    OrderVM,
    PaymentStatus,
    Product,
    ProductVM,
    RefundPaymentArgs,
)
from shop.errors import (
    CategoryInUseError,
    InvalidOrderTransitionError,
    NotFoundError,
    PaymentGatewayError,
    ValidationFailedError,
)
from shop.repositories import PaymentGateway, UnitOfWork
from shop.validation import (
    DomainValidationError,
    ensure_file_storage_repository,
    ensure_payment_gateway,
    ensure_unit_of_work,
    validate_domain_model,
)
from util.domain import FileUpload
from util.errors import FileStorageError
from util.repositories import FileStorageRepository
from util.validation import sanitize_filename, validate_image_upload

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DELAYED_PAYMENT_TERM = timedelta(days=30)


def _validate(data: Union[Dict[str, Any], BaseModel], model: Type[M]) -> M:
    try:
        return validate_domain_model(data, model)
    except DomainValidationError as e:
        raise ValidationFailedError("Model is invalid", errors=e.errors) from e


class OrderWorkflowUseCase:
    """
    Use case for moving orders through their status workflow.

    Every transition loads the stored order header, checks that the target
    status may be entered from the stored status, stages the change on the
    unit of work and commits exactly once. Cancelling an order whose payment
    was approved refunds it through the payment gateway before the status is
    written.

    Architectural Notes:
    - The order id is taken from the submitted view model; all other state
      (statuses, payment intent) is read from the store
    - A failed refund aborts the cancellation and leaves the order untouched
    - The refund and the status commit are not one transaction. If the
      commit fails after a refund succeeded the refund id is logged and the
      error re-raised; retrying is safe because refunds are idempotent per
      payment intent
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        payment_gateway: PaymentGateway,
    ) -> None:
        """Initialize order workflow use case.

        Args:
            unit_of_work: Unit of work giving access to the order tables
            payment_gateway: Client for the remote payment processor

        Raises:
            RepositoryValidationError: If a dependency does not satisfy its
                protocol
        """
        self.unit_of_work = ensure_unit_of_work(unit_of_work)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)

    async def _load_header(self, order_id: int) -> OrderHeader:
        header = await self.unit_of_work.order_header.get_one(
            lambda h: h.id == order_id
        )
        if header is None:
            logger.warning(
                "Order not found", extra={"order_id": order_id}
            )
            raise NotFoundError("OrderHeader", order_id)
        return header

    @staticmethod
    def _check_transition(header: OrderHeader, target: OrderStatus) -> None:
        if not header.can_transition_to(target):
            logger.warning(
                "Order status transition rejected",
                extra={
                    "order_id": header.id,
                    "current_status": header.order_status.value,
                    "target_status": target.value,
                },
            )
            raise InvalidOrderTransitionError(
                f"Order {header.id} cannot move from "
                f"{header.order_status.value} to {target.value}"
            )

    async def get_order_details(self, order_id: int) -> OrderVM:
        """Return the order header with its detail lines and products."""
        header = await self._load_header(order_id)
        details = await self.unit_of_work.order_detail.get_all(
            lambda d: d.order_header_id == order_id,
            include_related=True,
        )
        logger.debug(
            "Order details loaded",
            extra={"order_id": order_id, "detail_count": len(details)},
        )
        return OrderVM(order_header=header, order_details=details)

    async def list_orders(self, status: Optional[str] = None) -> List[OrderHeader]:
        """
        Return all orders, or those matching a status filter.

        Accepted filters are ``all``, ``pending``, ``approved``,
        ``inprocess``, ``shipped`` and ``cancelled`` (case-insensitive).
        """
        key = (status or "all").strip().lower()
        if key not in ORDER_STATUS_FILTERS:
            raise ValidationFailedError(
                "Model is invalid",
                errors=[
                    {
                        "loc": ["status"],
                        "msg": f"Unknown order status filter '{status}'",
                        "type": "value_error",
                    }
                ],
            )
        statuses = ORDER_STATUS_FILTERS[key]
        if statuses is None:
            return await self.unit_of_work.order_header.get_all()
        return await self.unit_of_work.order_header.get_all(
            lambda h: h.order_status in statuses
        )

    async def set_in_process(self, order_vm: OrderVM) -> OrderStatusOutcome:
        order_id = order_vm.order_header.id
        logger.info(
            "Starting order processing use case", extra={"order_id": order_id}
        )
        header = await self._load_header(order_id)
        self._check_transition(header, OrderStatus.IN_PROCESS)

        await self.unit_of_work.order_header.update_status(
            order_id, OrderStatus.IN_PROCESS
        )
        await self.unit_of_work.commit()

        logger.info(
            "Order status set to Processing", extra={"order_id": order_id}
        )
        return OrderStatusOutcome(
            order_id=order_id,
            order_status=OrderStatus.IN_PROCESS,
            payment_status=header.payment_status,
        )

    async def set_shipped(self, order_vm: OrderVM) -> OrderStatusOutcome:
        """
        Mark an order as shipped.

        Carrier and tracking number come from the submitted view model and
        are both required. The whole header is written back, so the shipping
        details and the status change land in the same commit.
        """
        submitted = order_vm.order_header
        order_id = submitted.id
        carrier = (submitted.carrier or "").strip()
        tracking_number = (submitted.tracking_number or "").strip()

        errors = []
        if not carrier:
            errors.append(
                {
                    "loc": ["carrier"],
                    "msg": "Carrier is required",
                    "type": "missing",
                }
            )
        if not tracking_number:
            errors.append(
                {
                    "loc": ["tracking_number"],
                    "msg": "Tracking number is required",
                    "type": "missing",
                }
            )
        if errors:
            logger.warning(
                "Shipping details rejected",
                extra={"order_id": order_id, "validation_errors": errors},
            )
            raise ValidationFailedError("Model is invalid", errors=errors)

        logger.info(
            "Starting order shipping use case",
            extra={"order_id": order_id, "carrier": carrier},
        )
        header = await self._load_header(order_id)
        self._check_transition(header, OrderStatus.SHIPPED)

        now = datetime.now(timezone.utc)
        header.carrier = carrier
        header.tracking_number = tracking_number
        header.order_status = OrderStatus.SHIPPED
        header.shipping_date = now
        if header.payment_status == PaymentStatus.DELAYED_PAYMENT:
            header.payment_due_date = (now + DELAYED_PAYMENT_TERM).date()

        await self.unit_of_work.order_header.update(header)
        await self.unit_of_work.commit()

        logger.info(
            "Order shipped",
            extra={
                "order_id": order_id,
                "carrier": carrier,
                "tracking_number": tracking_number,
            },
        )
        return OrderStatusOutcome(
            order_id=order_id,
            order_status=OrderStatus.SHIPPED,
            payment_status=header.payment_status,
        )

    async def set_cancelled(self, order_vm: OrderVM) -> OrderStatusOutcome:
        """
        Cancel an order, refunding its payment if it was approved.

        This involves:
        1. Fetching the stored order and checking the transition.
        2. Refunding the payment intent when the payment status is Approved.
        3. Staging status Cancelled with payment status Refunded (after a
           refund) or Cancelled (otherwise).
        4. Committing once.
        """
        order_id = order_vm.order_header.id
        logger.info(
            "Starting order cancellation use case",
            extra={"order_id": order_id},
        )
        header = await self._load_header(order_id)
        self._check_transition(header, OrderStatus.CANCELLED)

        refund_id: Optional[str] = None
        if header.payment_status == PaymentStatus.APPROVED:
            refund_id = await self._refund(header)
            payment_status = PaymentStatus.REFUNDED
        else:
            logger.info(
                "Payment not approved, no refund needed",
                extra={
                    "order_id": order_id,
                    "payment_status": header.payment_status.value,
                },
            )
            payment_status = PaymentStatus.CANCELLED

        await self.unit_of_work.order_header.update_status(
            order_id, OrderStatus.CANCELLED, payment_status
        )
        try:
            await self.unit_of_work.commit()
        except Exception as e:
            logger.error(
                "Failed to commit order cancellation",
                extra={
                    "order_id": order_id,
                    "refund_id": refund_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise

        logger.info(
            "Order successfully cancelled",
            extra={
                "order_id": order_id,
                "payment_status": payment_status.value,
                "refund_id": refund_id,
            },
        )
        return OrderStatusOutcome(
            order_id=order_id,
            order_status=OrderStatus.CANCELLED,
            payment_status=payment_status,
            refund_id=refund_id,
        )

    async def _refund(self, header: OrderHeader) -> str:
        if not header.payment_intent_id:
            logger.error(
                "Approved order has no payment intent",
                extra={"order_id": header.id},
            )
            raise InvalidOrderTransitionError(
                f"Order {header.id} has an approved payment but no "
                "payment intent to refund"
            )

        args = RefundPaymentArgs(
            order_id=header.id,
            payment_intent_id=header.payment_intent_id,
            reason="Order cancellation",
        )
        logger.debug(
            "Attempting to refund payment",
            extra={
                "order_id": header.id,
                "payment_intent_id": header.payment_intent_id,
            },
        )
        try:
            outcome = await self.payment_gateway.refund_payment(args)
        except Exception as e:
            logger.error(
                "Payment gateway call failed",
                extra={
                    "order_id": header.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            await self.unit_of_work.rollback()
            raise PaymentGatewayError(
                f"Refund for order {header.id} failed: {e}"
            ) from e

        if outcome.status != "refunded" or outcome.refund_id is None:
            logger.warning(
                "Payment refund failed",
                extra={"order_id": header.id, "refund_reason": outcome.reason},
            )
            await self.unit_of_work.rollback()
            raise PaymentGatewayError(
                f"Refund for order {header.id} failed: {outcome.reason}"
            )

        logger.info(
            "Payment successfully refunded",
            extra={"order_id": header.id, "refund_id": outcome.refund_id},
        )
        return outcome.refund_id


class CatalogAdminUseCase:
    """
    Use case for administering categories and products.

    Product images live in a file store, rows in the unit of work. A new
    image is written and verified before the row that points at it is
    committed, and the previous image is removed only after that commit.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        file_storage: FileStorageRepository,
    ) -> None:
        self.unit_of_work = ensure_unit_of_work(unit_of_work)
        self.file_storage = ensure_file_storage_repository(file_storage)

    # Categories

    async def list_categories(self) -> List[Category]:
        return await self.unit_of_work.category.get_all()

    async def get_category(self, category_id: int) -> Category:
        category = await self.unit_of_work.category.get_one(
            lambda c: c.id == category_id
        )
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def upsert_category(
        self, data: Union[Dict[str, Any], Category]
    ) -> Category:
        """
        Create a category (id 0) or replace a stored one.

        Raises:
            ValidationFailedError: If the data is not a valid category. No
                store call is made in that case.
            NotFoundError: If the id refers to no stored category
        """
        category = _validate(data, Category)

        if category.id == 0:
            category = await self.unit_of_work.category.add(category)
            action = "created"
        else:
            stored = await self.get_category(category.id)
            category.created_at = stored.created_at
            await self.unit_of_work.category.update(category)
            action = "updated"
        await self.unit_of_work.commit()

        logger.info(
            "Category saved",
            extra={
                "category_id": category.id,
                "category_name": category.name,
                "action": action,
            },
        )
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self.get_category(category_id)
        products = await self.unit_of_work.product.get_all(
            lambda p: p.category_id == category_id
        )
        if products:
            logger.warning(
                "Category still referenced by products",
                extra={
                    "category_id": category_id,
                    "product_count": len(products),
                },
            )
            raise CategoryInUseError(
                f"Category {category_id} is used by {len(products)} product(s)"
            )

        await self.unit_of_work.category.delete(category)
        await self.unit_of_work.commit()
        logger.info("Category deleted", extra={"category_id": category_id})

    # Products

    async def list_products(self) -> List[Product]:
        return await self.unit_of_work.product.get_all(include_related=True)

    async def get_product(self, product_id: int) -> Product:
        product = await self.unit_of_work.product.get_one(
            lambda p: p.id == product_id, include_related=True
        )
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def get_product_form(
        self, product_id: Optional[int] = None
    ) -> ProductVM:
        """Return the category choices and, for an edit, the product."""
        categories = await self.list_categories()
        product = None
        if product_id:
            product = await self.get_product(product_id)
        return ProductVM(product=product, categories=categories)

    async def upsert_product(
        self,
        data: Union[Dict[str, Any], Product],
        image: Optional[Union[Dict[str, Any], FileUpload]] = None,
    ) -> Product:
        """
        Create a product (id 0) or replace a stored one, optionally with a
        new image.

        The product and the image are validated before anything is written.
        On update the stored image_url wins over the submitted one; on create
        a submitted image_url is ignored. When a new image is given it is
        saved under a unique name, checked for existence, and only after the
        row is committed is the previous image removed.

        Raises:
            ValidationFailedError: Invalid product, invalid image or unknown
                category
            NotFoundError: If the id refers to no stored product
            FileStorageError: If the image cannot be stored
        """
        product = _validate(data, Product)
        upload = self._validate_image(image) if image is not None else None

        category = await self.unit_of_work.category.get_one(
            lambda c: c.id == product.category_id
        )
        if category is None:
            raise ValidationFailedError(
                "Model is invalid",
                errors=[
                    {
                        "loc": ["category_id"],
                        "msg": f"Category {product.category_id} does not exist",
                        "type": "value_error",
                    }
                ],
            )

        if product.id == 0:
            product.image_url = None
        else:
            stored = await self.unit_of_work.product.get_one(
                lambda p: p.id == product.id
            )
            if stored is None:
                raise NotFoundError("Product", product.id)
            product.image_url = stored.image_url

        previous_image = product.image_url
        new_image: Optional[str] = None
        if upload is not None:
            new_image = await self._store_image(upload)
            product.image_url = new_image

        try:
            if product.id == 0:
                product = await self.unit_of_work.product.add(product)
            else:
                await self.unit_of_work.product.update(product)
            await self.unit_of_work.commit()
        except Exception as e:
            logger.error(
                "Failed to save product",
                extra={
                    "product_id": product.id,
                    "image_url": new_image,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            await self.unit_of_work.rollback()
            if new_image is not None:
                await self._discard_image(new_image)
            raise

        if new_image is not None and previous_image:
            await self._discard_image(previous_image)

        product.category = category
        logger.info(
            "Product saved",
            extra={"product_id": product.id, "image_url": product.image_url},
        )
        return product

    async def delete_product(self, product_id: int) -> DeleteResult:
        product = await self.unit_of_work.product.get_one(
            lambda p: p.id == product_id
        )
        if product is None:
            logger.warning(
                "Product not found for deletion",
                extra={"product_id": product_id},
            )
            return DeleteResult(success=False, message="Error in Fetching Data")

        await self.unit_of_work.product.delete(product)
        await self.unit_of_work.commit()

        if product.image_url:
            await self._discard_image(product.image_url)

        logger.info("Product deleted", extra={"product_id": product_id})
        return DeleteResult(success=True, message="Delete Successful")

    @staticmethod
    def _validate_image(image: Union[Dict[str, Any], FileUpload]) -> FileUpload:
        upload = _validate(image, FileUpload)
        try:
            validate_image_upload(
                upload.data, upload.content_type, upload.filename
            )
        except ValueError as e:
            raise ValidationFailedError(
                "Model is invalid",
                errors=[{"loc": ["file"], "msg": str(e), "type": "value_error"}],
            ) from e
        return upload

    async def _store_image(self, upload: FileUpload) -> str:
        name = f"{uuid.uuid4()}-{sanitize_filename(upload.filename)}"
        path = await self.file_storage.save(upload.data, name)
        if not await self.file_storage.exists(path):
            logger.error(
                "Stored image not found after write", extra={"image_url": path}
            )
            raise FileStorageError(f"Image {path} was not stored")
        logger.debug(
            "Image stored",
            extra={"image_url": path, "size_bytes": len(upload.data)},
        )
        return path

    async def _discard_image(self, path: str) -> None:
        """Remove an image if present. Failures leave an orphan file."""
        try:
            if await self.file_storage.exists(path):
                await self.file_storage.delete(path)
        except FileStorageError as e:
            logger.warning(
                "Failed to remove image, file left orphaned",
                extra={"image_url": path, "error": str(e)},
            )
