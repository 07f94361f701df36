"""
Orders API router.

Routes defined at root level:
- GET / - List orders, optionally filtered by ?status= (paginated)
- GET /{order_id} - Order header with detail lines
- POST /{order_id}/in-process - Start processing an order
- POST /{order_id}/ship - Ship an order with carrier and tracking number
- POST /{order_id}/cancel - Cancel an order, refunding approved payments

These routes are mounted at /orders in the main app.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from shop.api.dependencies import get_order_workflow_use_case
from shop.api.errors import to_http_exception
from shop.api.requests import ShipOrderRequest
from shop.domain import OrderHeader, OrderStatusOutcome, OrderVM
from shop.usecase import OrderWorkflowUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


def _order_ref(order_id: int) -> OrderVM:
    return OrderVM(order_header=OrderHeader(id=order_id))


@router.get("", response_model=Page[OrderHeader])
async def list_orders(
    status: Optional[str] = None,
    use_case: OrderWorkflowUseCase = Depends(get_order_workflow_use_case),
) -> Page[OrderHeader]:
    """Get a paginated list of orders, optionally filtered by status."""
    logger.info("Orders requested", extra={"status_filter": status})
    try:
        orders = await use_case.list_orders(status)
    except Exception as e:
        raise to_http_exception(e, "retrieve orders") from e
    return paginate(orders)  # type: ignore[no-any-return]


@router.get("/{order_id}", response_model=OrderVM)
async def get_order(
    order_id: int,
    use_case: OrderWorkflowUseCase = Depends(get_order_workflow_use_case),
) -> OrderVM:
    try:
        return await use_case.get_order_details(order_id)
    except Exception as e:
        raise to_http_exception(e, "retrieve order") from e


@router.post("/{order_id}/in-process", response_model=OrderStatusOutcome)
async def start_processing(
    order_id: int,
    use_case: OrderWorkflowUseCase = Depends(get_order_workflow_use_case),
) -> OrderStatusOutcome:
    logger.info("Order processing requested", extra={"order_id": order_id})
    try:
        return await use_case.set_in_process(_order_ref(order_id))
    except Exception as e:
        raise to_http_exception(e, "start processing order") from e


@router.post("/{order_id}/ship", response_model=OrderStatusOutcome)
async def ship_order(
    order_id: int,
    request: ShipOrderRequest,
    use_case: OrderWorkflowUseCase = Depends(get_order_workflow_use_case),
) -> OrderStatusOutcome:
    logger.info(
        "Order shipping requested",
        extra={"order_id": order_id, "carrier": request.carrier},
    )
    try:
        return await use_case.set_shipped(request.to_order_vm(order_id))
    except Exception as e:
        raise to_http_exception(e, "ship order") from e


@router.post("/{order_id}/cancel", response_model=OrderStatusOutcome)
async def cancel_order(
    order_id: int,
    use_case: OrderWorkflowUseCase = Depends(get_order_workflow_use_case),
) -> OrderStatusOutcome:
    """
    Cancel an order.

    Approved payments are refunded before the order is marked cancelled. If
    the payment processor fails the refund, the order is left unchanged and
    502 is returned.
    """
    logger.info("Order cancellation requested", extra={"order_id": order_id})
    try:
        return await use_case.set_cancelled(_order_ref(order_id))
    except Exception as e:
        raise to_http_exception(e, "cancel order") from e
