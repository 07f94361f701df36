"""
Memory implementation of PaymentGateway.
"""

import logging
from typing import Dict, List, Optional

from shop.domain import RefundPaymentArgs, RefundPaymentOutcome
from shop.repositories import PaymentGateway

logger = logging.getLogger(__name__)


class MemoryPaymentGateway(PaymentGateway):
    """
    In-memory stand-in for the payment processor.

    Refunds are recorded per payment intent, so refunding the same intent
    twice returns the first refund. Set ``fail_with`` to make every refund
    attempt fail with that reason.
    """

    def __init__(self, fail_with: Optional[str] = None) -> None:
        self.fail_with = fail_with
        self.refunds: Dict[str, str] = {}
        self.calls: List[RefundPaymentArgs] = []
        logger.debug("Initializing MemoryPaymentGateway")

    async def refund_payment(
        self, args: RefundPaymentArgs
    ) -> RefundPaymentOutcome:
        self.calls.append(args)
        logger.info(
            "Refunding payment",
            extra={
                "order_id": args.order_id,
                "payment_intent_id": args.payment_intent_id,
                "reason": args.reason,
            },
        )

        if self.fail_with is not None:
            logger.warning(
                "Refund rejected by memory gateway",
                extra={
                    "order_id": args.order_id,
                    "payment_intent_id": args.payment_intent_id,
                    "reason": self.fail_with,
                },
            )
            return RefundPaymentOutcome(status="failed", reason=self.fail_with)

        refund_id = self.refunds.get(args.payment_intent_id)
        if refund_id is not None:
            logger.info(
                "Refund already processed for this payment intent",
                extra={
                    "payment_intent_id": args.payment_intent_id,
                    "refund_id": refund_id,
                },
            )
            return RefundPaymentOutcome(status="refunded", refund_id=refund_id)

        refund_id = f"re_{args.payment_intent_id}"
        self.refunds[args.payment_intent_id] = refund_id
        return RefundPaymentOutcome(status="refunded", refund_id=refund_id)
