"""Loyalty reacts to order events.

Points are credited when an order is delivered, never at checkout, and
points redeemed on an order that is cancelled or refunded are given back.
Each reaction checks the ledger first, so it is applied once per order.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from bakery.domain import bakery
from bakery.loyalty.account import LoyaltyAccount, TransactionKind
from bakery.order.events import OrderCancelled, OrderDelivered, OrderRefunded

logger = structlog.get_logger(__name__)


@bakery.event_handler(part_of=LoyaltyAccount, stream_category="bakery::order")
class LoyaltyOrderEventHandler:
    @handle(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered) -> None:
        if not event.loyalty_points_earned:
            return

        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.get_or_open_for(event.customer_id)
        if account.has_transaction_for(event.order_id, TransactionKind.EARNED):
            logger.debug("Order already credited", order_id=str(event.order_id))
            return

        account.add_points(
            amount=event.loyalty_points_earned,
            description=f"Order {event.order_number}",
            order_id=event.order_id,
            order_amount=event.final_amount,
        )
        repo.add(account)
        logger.info(
            "Points credited for delivered order",
            customer_id=str(event.customer_id),
            order_number=event.order_number,
            amount=event.loyalty_points_earned,
            tier=account.tier,
        )

    def _give_back(self, event, reason: str) -> None:
        if not event.loyalty_points_used:
            return

        repo = current_domain.repository_for(LoyaltyAccount)
        account = repo.find_by_customer(event.customer_id)
        if account is None or account.has_transaction_for(event.order_id, TransactionKind.ADJUSTMENT):
            return

        account.adjust_points(
            amount=event.loyalty_points_used,
            description=f"Points returned from order {event.order_number}",
            reason=reason,
            order_id=event.order_id,
        )
        repo.add(account)
        logger.info(
            "Redeemed points returned",
            customer_id=str(event.customer_id),
            order_number=event.order_number,
            amount=event.loyalty_points_used,
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        self._give_back(event, event.reason or "Order cancelled")

    @handle(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded) -> None:
        self._give_back(event, event.reason or "Order refunded")
