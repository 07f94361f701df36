"""
Tests for OrderWorkflowUseCase.

Most tests run the use case against protocol-specced mocks and assert on the
calls it makes; the rest run it against the memory unit of work to check the
committed result.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from hypothesis import given, settings, strategies as st

from shop.domain import (
    OrderHeader,
    OrderStatus,
    OrderVM,
    PaymentStatus,
    RefundPaymentArgs,
    RefundPaymentOutcome,
)
from shop.errors import (
    InvalidOrderTransitionError,
    NotFoundError,
    PaymentGatewayError,
    StoreError,
    ValidationFailedError,
)
from shop.repos.memory.payment import MemoryPaymentGateway
from shop.repos.memory.unit_of_work import MemoryDatabase, MemoryUnitOfWork
from shop.repos.staged import ORDER_DETAILS, ORDER_HEADERS, PRODUCTS
from shop.tests.factories import (
    OrderDetailFactory,
    OrderHeaderFactory,
    ProductFactory,
    seed,
)
from shop.tests.mocks import (
    destructive_calls,
    make_mock_payment_gateway,
    make_mock_unit_of_work,
    store_calls,
)
from shop.usecase import OrderWorkflowUseCase
from shop.validation import RepositoryValidationError


def _ref(order_id: int, **fields: str) -> OrderVM:
    return OrderVM(order_header=OrderHeader(id=order_id, **fields))


def _use_case(uow: MagicMock, gateway: MagicMock) -> OrderWorkflowUseCase:
    return OrderWorkflowUseCase(unit_of_work=uow, payment_gateway=gateway)


class TestConstruction:
    def test_rejects_dependencies_that_do_not_satisfy_protocols(
        self, mock_payment_gateway: MagicMock
    ) -> None:
        with pytest.raises(RepositoryValidationError):
            OrderWorkflowUseCase(
                unit_of_work=object(),  # type: ignore[arg-type]
                payment_gateway=mock_payment_gateway,
            )

    def test_rejects_missing_payment_gateway(
        self, mock_unit_of_work: MagicMock
    ) -> None:
        with pytest.raises(RepositoryValidationError):
            OrderWorkflowUseCase(
                unit_of_work=mock_unit_of_work,
                payment_gateway=None,  # type: ignore[arg-type]
            )


class TestSetInProcess:
    @pytest.mark.asyncio
    async def test_pending_order_moves_to_processing(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(id=7)
        mock_unit_of_work.order_header.get_one.return_value = header

        outcome = await _use_case(
            mock_unit_of_work, mock_payment_gateway
        ).set_in_process(_ref(7))

        assert outcome.order_id == 7
        assert outcome.order_status == OrderStatus.IN_PROCESS
        mock_unit_of_work.order_header.update_status.assert_awaited_once_with(
            7, OrderStatus.IN_PROCESS
        )
        mock_unit_of_work.commit.assert_awaited_once()
        mock_payment_gateway.refund_payment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approved_order_moves_to_processing(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=8,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
        )
        mock_unit_of_work.order_header.get_one.return_value = header

        outcome = await _use_case(
            mock_unit_of_work, mock_payment_gateway
        ).set_in_process(_ref(8))

        assert outcome.payment_status == PaymentStatus.APPROVED
        mock_unit_of_work.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_order_raises_not_found(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        with pytest.raises(NotFoundError):
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_in_process(_ref(99))

        assert destructive_calls(mock_unit_of_work) == 0


class TestSetShipped:
    @pytest.mark.asyncio
    async def test_writes_shipping_details_and_status_in_one_commit(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=3,
            order_status=OrderStatus.IN_PROCESS,
            payment_status=PaymentStatus.APPROVED,
        )
        mock_unit_of_work.order_header.get_one.return_value = header

        outcome = await _use_case(
            mock_unit_of_work, mock_payment_gateway
        ).set_shipped(_ref(3, carrier="UPS", tracking_number="1Z999"))

        assert outcome.order_status == OrderStatus.SHIPPED
        mock_unit_of_work.order_header.update.assert_awaited_once()
        written = mock_unit_of_work.order_header.update.await_args.args[0]
        assert written.id == 3
        assert written.carrier == "UPS"
        assert written.tracking_number == "1Z999"
        assert written.order_status == OrderStatus.SHIPPED
        assert written.shipping_date is not None
        assert written.payment_due_date is None
        mock_unit_of_work.order_header.update_status.assert_not_awaited()
        mock_unit_of_work.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delayed_payment_gets_due_date_thirty_days_out(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=4,
            order_status=OrderStatus.IN_PROCESS,
            payment_status=PaymentStatus.DELAYED_PAYMENT,
        )
        mock_unit_of_work.order_header.get_one.return_value = header

        await _use_case(mock_unit_of_work, mock_payment_gateway).set_shipped(
            _ref(4, carrier="FedEx", tracking_number="7489")
        )

        written = mock_unit_of_work.order_header.update.await_args.args[0]
        assert written.payment_due_date == (
            written.shipping_date + timedelta(days=30)
        ).date()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "carrier,tracking_number",
        [
            (None, "1Z999"),
            ("UPS", None),
            ("", ""),
            ("   ", "1Z999"),
        ],
    )
    async def test_missing_shipping_details_rejected_before_store_access(
        self,
        mock_unit_of_work: MagicMock,
        mock_payment_gateway: MagicMock,
        carrier: str,
        tracking_number: str,
    ) -> None:
        order_vm = OrderVM(
            order_header=OrderHeader(
                id=3, carrier=carrier, tracking_number=tracking_number
            )
        )

        with pytest.raises(ValidationFailedError) as exc_info:
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_shipped(order_vm)

        assert exc_info.value.message == "Model is invalid"
        assert exc_info.value.errors
        assert store_calls(mock_unit_of_work) == 0


class TestSetCancelled:
    @pytest.mark.asyncio
    async def test_approved_payment_is_refunded_once(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=11,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
            payment_intent_id="pi_abc",
        )
        mock_unit_of_work.order_header.get_one.return_value = header
        mock_payment_gateway.refund_payment.return_value = (
            RefundPaymentOutcome(status="refunded", refund_id="re_abc")
        )

        outcome = await _use_case(
            mock_unit_of_work, mock_payment_gateway
        ).set_cancelled(_ref(11))

        mock_payment_gateway.refund_payment.assert_awaited_once_with(
            RefundPaymentArgs(
                order_id=11,
                payment_intent_id="pi_abc",
                reason="Order cancellation",
            )
        )
        mock_unit_of_work.order_header.update_status.assert_awaited_once_with(
            11, OrderStatus.CANCELLED, PaymentStatus.REFUNDED
        )
        mock_unit_of_work.commit.assert_awaited_once()
        assert outcome.order_status == OrderStatus.CANCELLED
        assert outcome.payment_status == PaymentStatus.REFUNDED
        assert outcome.refund_id == "re_abc"

    @pytest.mark.asyncio
    async def test_intent_id_comes_from_store_not_request(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=12,
            order_status=OrderStatus.IN_PROCESS,
            payment_status=PaymentStatus.APPROVED,
            payment_intent_id="pi_stored",
        )
        mock_unit_of_work.order_header.get_one.return_value = header
        mock_payment_gateway.refund_payment.return_value = (
            RefundPaymentOutcome(status="refunded", refund_id="re_1")
        )

        await _use_case(mock_unit_of_work, mock_payment_gateway).set_cancelled(
            _ref(12, payment_intent_id="pi_forged")
        )

        args = mock_payment_gateway.refund_payment.await_args.args[0]
        assert args.payment_intent_id == "pi_stored"

    @settings(max_examples=50, deadline=None)
    @given(
        order_status=st.sampled_from(
            [OrderStatus.PENDING, OrderStatus.APPROVED, OrderStatus.IN_PROCESS]
        ),
        payment_status=st.sampled_from(
            [s for s in PaymentStatus if s != PaymentStatus.APPROVED]
        ),
    )
    def test_unapproved_payment_is_never_refunded(
        self, order_status: OrderStatus, payment_status: PaymentStatus
    ) -> None:
        uow = make_mock_unit_of_work()
        gateway = make_mock_payment_gateway()
        uow.order_header.get_one.return_value = OrderHeaderFactory.build(
            id=5, order_status=order_status, payment_status=payment_status
        )

        outcome = asyncio.run(_use_case(uow, gateway).set_cancelled(_ref(5)))

        gateway.refund_payment.assert_not_awaited()
        uow.order_header.update_status.assert_awaited_once_with(
            5, OrderStatus.CANCELLED, PaymentStatus.CANCELLED
        )
        uow.commit.assert_awaited_once()
        assert outcome.order_status == OrderStatus.CANCELLED
        assert outcome.refund_id is None

    @pytest.mark.asyncio
    async def test_failed_refund_rolls_back_and_keeps_status(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=13,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
        )
        mock_unit_of_work.order_header.get_one.return_value = header
        mock_payment_gateway.refund_payment.return_value = (
            RefundPaymentOutcome(status="failed", reason="charge disputed")
        )

        with pytest.raises(PaymentGatewayError, match="charge disputed"):
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_cancelled(_ref(13))

        mock_unit_of_work.rollback.assert_awaited_once()
        assert destructive_calls(mock_unit_of_work) == 0

    @pytest.mark.asyncio
    async def test_gateway_exception_rolls_back_and_keeps_status(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=14,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
        )
        mock_unit_of_work.order_header.get_one.return_value = header
        mock_payment_gateway.refund_payment.side_effect = ConnectionError(
            "timed out"
        )

        with pytest.raises(PaymentGatewayError):
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_cancelled(_ref(14))

        mock_unit_of_work.rollback.assert_awaited_once()
        assert destructive_calls(mock_unit_of_work) == 0

    @pytest.mark.asyncio
    async def test_approved_order_without_payment_intent_is_rejected(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=15,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
            payment_intent_id=None,
        )
        mock_unit_of_work.order_header.get_one.return_value = header

        with pytest.raises(InvalidOrderTransitionError):
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_cancelled(_ref(15))

        mock_payment_gateway.refund_payment.assert_not_awaited()
        assert destructive_calls(mock_unit_of_work) == 0

    @pytest.mark.asyncio
    async def test_commit_failure_after_refund_is_reraised(
        self, mock_unit_of_work: MagicMock, mock_payment_gateway: MagicMock
    ) -> None:
        header = OrderHeaderFactory.build(
            id=16,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
        )
        mock_unit_of_work.order_header.get_one.return_value = header
        mock_payment_gateway.refund_payment.return_value = (
            RefundPaymentOutcome(status="refunded", refund_id="re_16")
        )
        mock_unit_of_work.commit.side_effect = StoreError("store offline")

        with pytest.raises(StoreError):
            await _use_case(
                mock_unit_of_work, mock_payment_gateway
            ).set_cancelled(_ref(16))

        mock_payment_gateway.refund_payment.assert_awaited_once()


class TestTransitionGuard:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current,method",
        [
            (OrderStatus.SHIPPED, "set_in_process"),
            (OrderStatus.CANCELLED, "set_in_process"),
            (OrderStatus.IN_PROCESS, "set_in_process"),
            (OrderStatus.PENDING, "set_shipped"),
            (OrderStatus.SHIPPED, "set_shipped"),
            (OrderStatus.CANCELLED, "set_cancelled"),
            (OrderStatus.SHIPPED, "set_cancelled"),
            (OrderStatus.REFUNDED, "set_cancelled"),
        ],
    )
    async def test_disallowed_transition_changes_nothing(
        self,
        mock_unit_of_work: MagicMock,
        mock_payment_gateway: MagicMock,
        current: OrderStatus,
        method: str,
    ) -> None:
        mock_unit_of_work.order_header.get_one.return_value = (
            OrderHeaderFactory.build(
                id=20,
                order_status=current,
                payment_status=PaymentStatus.APPROVED,
            )
        )
        use_case = _use_case(mock_unit_of_work, mock_payment_gateway)

        with pytest.raises(InvalidOrderTransitionError):
            await getattr(use_case, method)(
                _ref(20, carrier="UPS", tracking_number="1Z")
            )

        assert destructive_calls(mock_unit_of_work) == 0
        mock_payment_gateway.refund_payment.assert_not_awaited()


class TestGetOrderDetails:
    @pytest.mark.asyncio
    async def test_missing_order_raises_not_found(
        self, unit_of_work: MemoryUnitOfWork, payment_gateway: MemoryPaymentGateway
    ) -> None:
        use_case = OrderWorkflowUseCase(unit_of_work, payment_gateway)

        with pytest.raises(NotFoundError):
            await use_case.get_order_details(404)

    @settings(max_examples=25, deadline=None)
    @given(
        detail_count=st.integers(min_value=0, max_value=8),
        other_count=st.integers(min_value=0, max_value=4),
    )
    def test_returns_exactly_the_details_of_the_order(
        self, detail_count: int, other_count: int
    ) -> None:
        database = MemoryDatabase()
        product = ProductFactory.build(id=1)
        header = OrderHeaderFactory.build(id=1)
        other = OrderHeaderFactory.build(id=2)
        details = [
            OrderDetailFactory.build(id=i + 1, order_header_id=1)
            for i in range(detail_count)
        ] + [
            OrderDetailFactory.build(id=100 + i, order_header_id=2)
            for i in range(other_count)
        ]

        async def scenario() -> OrderVM:
            await seed(database, PRODUCTS, [product])
            await seed(database, ORDER_HEADERS, [header, other])
            await seed(database, ORDER_DETAILS, details)
            use_case = OrderWorkflowUseCase(
                MemoryUnitOfWork(database), MemoryPaymentGateway()
            )
            return await use_case.get_order_details(1)

        order_vm = asyncio.run(scenario())

        assert order_vm.order_header.id == 1
        assert len(order_vm.order_details) == detail_count
        assert all(d.order_header_id == 1 for d in order_vm.order_details)
        assert all(
            d.product is not None and d.product.id == 1
            for d in order_vm.order_details
        )


class TestListOrders:
    @pytest_asyncio.fixture
    async def use_case(
        self, database: MemoryDatabase, unit_of_work: MemoryUnitOfWork
    ) -> OrderWorkflowUseCase:
        await seed(
            database,
            ORDER_HEADERS,
            [
                OrderHeaderFactory.build(id=1),
                OrderHeaderFactory.build(
                    id=2, order_status=OrderStatus.IN_PROCESS
                ),
                OrderHeaderFactory.build(
                    id=3, order_status=OrderStatus.CANCELLED
                ),
                OrderHeaderFactory.build(
                    id=4, order_status=OrderStatus.REFUNDED
                ),
                OrderHeaderFactory.build(id=5, order_status=OrderStatus.SHIPPED),
            ],
        )
        return OrderWorkflowUseCase(unit_of_work, MemoryPaymentGateway())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected_ids",
        [
            (None, [1, 2, 3, 4, 5]),
            ("all", [1, 2, 3, 4, 5]),
            ("pending", [1]),
            ("InProcess", [2]),
            ("shipped", [5]),
            ("cancelled", [3, 4]),
            ("approved", []),
        ],
    )
    async def test_status_filter(
        self, use_case: OrderWorkflowUseCase, status: str, expected_ids: list
    ) -> None:
        orders = await use_case.list_orders(status)
        assert [o.id for o in orders] == expected_ids

    @pytest.mark.asyncio
    async def test_unknown_filter_rejected(
        self, use_case: OrderWorkflowUseCase
    ) -> None:
        with pytest.raises(ValidationFailedError):
            await use_case.list_orders("lost")


class TestWorkflowAgainstMemoryStore:
    """End-to-end transitions committed to the memory store."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_to_shipped(
        self, database: MemoryDatabase, payment_gateway: MemoryPaymentGateway
    ) -> None:
        await seed(database, ORDER_HEADERS, [OrderHeaderFactory.build(id=1)])

        await OrderWorkflowUseCase(
            MemoryUnitOfWork(database), payment_gateway
        ).set_in_process(_ref(1))
        await OrderWorkflowUseCase(
            MemoryUnitOfWork(database), payment_gateway
        ).set_shipped(_ref(1, carrier="DHL", tracking_number="JD0001"))

        stored = await database.get(ORDER_HEADERS, OrderHeader, 1)
        assert stored is not None
        assert stored.order_status == OrderStatus.SHIPPED
        assert stored.carrier == "DHL"
        assert stored.tracking_number == "JD0001"
        assert stored.name is not None
        assert payment_gateway.calls == []

    @pytest.mark.asyncio
    async def test_cancel_approved_order_refunds_and_persists(
        self, database: MemoryDatabase, payment_gateway: MemoryPaymentGateway
    ) -> None:
        await seed(
            database,
            ORDER_HEADERS,
            [
                OrderHeaderFactory.build(
                    id=1,
                    order_status=OrderStatus.APPROVED,
                    payment_status=PaymentStatus.APPROVED,
                    payment_intent_id="pi_live",
                )
            ],
        )
        use_case = OrderWorkflowUseCase(
            MemoryUnitOfWork(database), payment_gateway
        )

        outcome = await use_case.set_cancelled(_ref(1))

        stored = await database.get(ORDER_HEADERS, OrderHeader, 1)
        assert stored is not None
        assert stored.order_status == OrderStatus.CANCELLED
        assert stored.payment_status == PaymentStatus.REFUNDED
        assert stored.payment_intent_id == "pi_live"
        assert payment_gateway.refunds == {"pi_live": outcome.refund_id}

        with pytest.raises(InvalidOrderTransitionError):
            await use_case.set_cancelled(_ref(1))
        assert len(payment_gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_refund_leaves_stored_order_untouched(
        self, database: MemoryDatabase
    ) -> None:
        header = OrderHeaderFactory.build(
            id=1,
            order_status=OrderStatus.APPROVED,
            payment_status=PaymentStatus.APPROVED,
        )
        await seed(database, ORDER_HEADERS, [header])
        unit_of_work = MemoryUnitOfWork(database)
        use_case = OrderWorkflowUseCase(
            unit_of_work, MemoryPaymentGateway(fail_with="card expired")
        )

        with pytest.raises(PaymentGatewayError):
            await use_case.set_cancelled(_ref(1))

        stored = await database.get(ORDER_HEADERS, OrderHeader, 1)
        assert stored is not None
        assert stored.model_dump() == header.model_dump()
        assert unit_of_work.pending_changes == 0

    @pytest.mark.asyncio
    async def test_retry_after_commit_failure_does_not_refund_twice(
        self, database: MemoryDatabase, payment_gateway: MemoryPaymentGateway
    ) -> None:
        await seed(
            database,
            ORDER_HEADERS,
            [
                OrderHeaderFactory.build(
                    id=1,
                    order_status=OrderStatus.APPROVED,
                    payment_status=PaymentStatus.APPROVED,
                    payment_intent_id="pi_retry",
                )
            ],
        )
        failing = MemoryUnitOfWork(database)
        failing.commit = AsyncMock(side_effect=StoreError("disk full"))  # type: ignore[method-assign]

        with pytest.raises(StoreError):
            await OrderWorkflowUseCase(failing, payment_gateway).set_cancelled(
                _ref(1)
            )

        outcome = await OrderWorkflowUseCase(
            MemoryUnitOfWork(database), payment_gateway
        ).set_cancelled(_ref(1))

        assert outcome.payment_status == PaymentStatus.REFUNDED
        assert len(payment_gateway.calls) == 2
        assert len(payment_gateway.refunds) == 1
