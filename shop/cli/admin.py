#!/usr/bin/env python3
"""
Admin CLI for the shop.

Lists and edits categories and moves orders through their workflow against
the store selected by the SHOP_* environment variables. With the default
memory backend every invocation starts from an empty store, so point
SHOP_STORE_BACKEND at minio for real use.
"""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Optional

import click

from shop.api.dependencies import (
    build_file_storage,
    build_payment_gateway,
    build_row_store,
    build_unit_of_work,
)
from shop.config import load_settings
from shop.domain import OrderHeader, OrderStatusOutcome, OrderVM
from shop.errors import ShopError
from shop.usecase import CatalogAdminUseCase, OrderWorkflowUseCase

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _order_workflow() -> OrderWorkflowUseCase:
    settings = load_settings()
    return OrderWorkflowUseCase(
        unit_of_work=build_unit_of_work(build_row_store(settings)),
        payment_gateway=build_payment_gateway(settings),
    )


def _catalog_admin() -> CatalogAdminUseCase:
    settings = load_settings()
    return CatalogAdminUseCase(
        unit_of_work=build_unit_of_work(build_row_store(settings)),
        file_storage=build_file_storage(settings),
    )


def _run(coro: Awaitable[Any]) -> Any:
    """Run a use case call, turning failures into a non-zero exit."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except ShopError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {str(e)}", exc_info=True)
        click.echo(f"Command failed: {str(e)}", err=True)
        sys.exit(1)


def _echo_outcome(outcome: OrderStatusOutcome) -> None:
    click.echo(
        f"Order {outcome.order_id}: {outcome.order_status.value} "
        f"(payment {outcome.payment_status.value})"
    )
    if outcome.refund_id:
        click.echo(f"Refund ID: {outcome.refund_id}")


def _order_ref(order_id: int, **fields: Optional[str]) -> OrderVM:
    return OrderVM(order_header=OrderHeader(id=order_id, **fields))


@click.group()
def main() -> None:
    """Shop administration commands."""


@main.command()
def categories() -> None:
    """List categories."""
    items = _run(_catalog_admin().list_categories())
    if not items:
        click.echo("No categories found.")
        return
    for category in items:
        click.echo(
            f"{category.id}\t{category.name}\t{category.display_order}"
        )


@main.command("add-category")
@click.option("--name", required=True, help="Category name")
@click.option(
    "--display-order",
    type=int,
    default=1,
    show_default=True,
    help="Position in category listings (1-100)",
)
def add_category(name: str, display_order: int) -> None:
    """Create a category."""
    category = _run(
        _catalog_admin().upsert_category(
            {"name": name, "display_order": display_order}
        )
    )
    click.echo(f"Created category {category.id}: {category.name}")


@main.command()
@click.option(
    "--status",
    default="all",
    show_default=True,
    help="all, pending, approved, inprocess, shipped or cancelled",
)
def orders(status: str) -> None:
    """List orders."""
    headers = _run(_order_workflow().list_orders(status))
    if not headers:
        click.echo("No orders found.")
        return
    for header in headers:
        click.echo(
            f"{header.id}\t{header.order_status.value}\t"
            f"{header.payment_status.value}\t{header.order_total}\t"
            f"{header.name or ''}"
        )


@main.command()
@click.argument("order_id", type=click.IntRange(min=0))
def order(order_id: int) -> None:
    """Show an order with its detail lines."""
    order_vm = _run(_order_workflow().get_order_details(order_id))
    header = order_vm.order_header
    click.echo(f"Order {header.id}")
    click.echo(f"Status: {header.order_status.value}")
    click.echo(f"Payment: {header.payment_status.value}")
    click.echo(f"Total: {header.order_total}")
    if header.carrier:
        click.echo(f"Carrier: {header.carrier} ({header.tracking_number})")
    click.echo(f"Lines: {len(order_vm.order_details)}")
    for detail in order_vm.order_details:
        product_name = detail.product.name if detail.product else "?"
        click.echo(
            f"  {detail.product_id}\t{product_name}\t"
            f"{detail.count} x {detail.price}"
        )


@main.command("in-process")
@click.argument("order_id", type=click.IntRange(min=0))
def in_process(order_id: int) -> None:
    """Start processing an order."""
    _echo_outcome(_run(_order_workflow().set_in_process(_order_ref(order_id))))


@main.command()
@click.argument("order_id", type=click.IntRange(min=0))
@click.option("--carrier", required=True, help="Shipping carrier")
@click.option("--tracking-number", required=True, help="Carrier tracking number")
def ship(order_id: int, carrier: str, tracking_number: str) -> None:
    """Ship an order."""
    order_vm = _order_ref(
        order_id, carrier=carrier, tracking_number=tracking_number
    )
    _echo_outcome(_run(_order_workflow().set_shipped(order_vm)))


@main.command()
@click.argument("order_id", type=click.IntRange(min=0))
@click.confirmation_option(prompt="Cancel this order?")
def cancel(order_id: int) -> None:
    """Cancel an order, refunding an approved payment."""
    _echo_outcome(_run(_order_workflow().set_cancelled(_order_ref(order_id))))


if __name__ == "__main__":
    main()
