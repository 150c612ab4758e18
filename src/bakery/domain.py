"""Bakery bounded context — carts, orders, loyalty and deliveries.

A mutable shopping cart becomes an immutable order at checkout. Orders debit
and credit the customer's loyalty ledger, confirmed delivery orders get a
tracked delivery, and a completed delivery closes its order.
"""

from protean.domain import Domain

from bakery.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

bakery = Domain(name="bakery")
