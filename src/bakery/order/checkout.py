"""Checkout — turns a customer's cart into a placed order.

The ``PlaceOrder`` handler does the whole conversion in one unit of work:
it snapshots the cart into an order, allocates the next order number of the
day, redeems the loyalty points the customer chose to spend and empties the
cart. Either all of that is committed or none of it is.

Order numbers are derived from the highest sequence already persisted for
the day, so ``checkout()`` holds the day's lock (and the customer's loyalty
account lock) from that read until the unit of work commits.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.fields import Boolean, DateTime, Identifier, String
from protean.utils.globals import current_domain

from bakery.cart.cart import ShoppingCart
from bakery.catalogue.product import Product
from bakery.config import get_settings
from bakery.domain import bakery, logger
from bakery.loyalty.account import LoyaltyAccount
from bakery.order.numbering import day_key, format_order_number
from bakery.order.order import Order, OrderSource
from bakery.shared.errors import ConcurrencyConflictError, ValidationError
from bakery.shared.locks import loyalty_account_locks, order_day_locks


@bakery.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    source = String(max_length=20, choices=OrderSource, default=OrderSource.WEBSITE.value)
    customer_notes = String(max_length=1000)
    is_urgent = Boolean(default=False)
    placed_at = DateTime()


def _catalogue_for(cart: ShoppingCart) -> dict:
    """Current catalogue entry of every product in the cart, None where it was removed."""
    repo = current_domain.repository_for(Product)
    products = {}
    for item in cart.items:
        try:
            products[str(item.product_id)] = repo.get(item.product_id)
        except ObjectNotFoundError:
            products[str(item.product_id)] = None
    return products


@bakery.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        settings = get_settings()
        placed_at = command.placed_at or datetime.now(UTC)

        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.find_by_customer(command.customer_id)
        if cart is None or cart.is_empty() or cart.is_expired(placed_at):
            raise ValidationError({"cart": ["Cart is empty"]})

        account_repo = current_domain.repository_for(LoyaltyAccount)
        account = account_repo.find_by_customer(command.customer_id)

        order_repo = current_domain.repository_for(Order)
        day = day_key(placed_at)
        sequence = order_repo.highest_daily_sequence(day) + 1
        order_number = format_order_number(settings.ORDER_NUMBER_PREFIX, day, sequence)
        if order_repo.find_by_number(order_number) is not None:
            raise ConcurrencyConflictError(f"Order number {order_number} was allocated concurrently")

        order = Order.place(
            cart,
            _catalogue_for(cart),
            order_number=order_number,
            placed_on=day,
            daily_sequence=sequence,
            account=account,
            source=command.source,
            customer_notes=command.customer_notes,
            is_urgent=command.is_urgent,
            placed_at=placed_at,
        )

        if order.loyalty_points.used:
            account.use_points(
                amount=order.loyalty_points.used,
                description=f"Redeemed on order {order_number}",
                order_id=order.id,
            )
            account_repo.add(account)

        cart.clear(reason="checked_out")
        cart_repo.add(cart)
        order_repo.add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order_number,
            customer_id=str(command.customer_id),
            final_amount=order.payment.final_amount,
            points_used=order.loyalty_points.used,
        )
        return order


def checkout(
    customer_id,
    source: str = OrderSource.WEBSITE.value,
    customer_notes: str | None = None,
    is_urgent: bool = False,
    placed_at: datetime | None = None,
) -> Order:
    """Place an order from the customer's cart, serialised per day and per loyalty account.

    Lost races (a duplicate order number or a stale aggregate version) are
    retried with fresh state up to ``CHECKOUT_RETRIES`` times before the
    conflict is reported to the caller.
    """
    placed_at = placed_at or datetime.now(UTC)
    command = PlaceOrder(
        customer_id=customer_id,
        source=source,
        customer_notes=customer_notes,
        is_urgent=is_urgent,
        placed_at=placed_at,
    )
    attempts = get_settings().CHECKOUT_RETRIES
    with order_day_locks.hold(day_key(placed_at)), loyalty_account_locks.hold(customer_id):
        for attempt in range(1, attempts + 1):
            try:
                return current_domain.process(command, asynchronous=False)
            except (ConcurrencyConflictError, ExpectedVersionError) as exc:
                logger.warning(
                    "Checkout lost a concurrent race",
                    customer_id=str(customer_id),
                    attempt=attempt,
                    error=str(exc),
                )
    raise ConcurrencyConflictError(f"Checkout for customer {customer_id} kept conflicting, please retry")

