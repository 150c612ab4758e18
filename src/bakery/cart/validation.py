"""Pre-checkout validation of a cart against the live catalogue."""

from datetime import datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from bakery.cart.cart import ShoppingCart
from bakery.catalogue.product import Product


def validate_cart(cart: ShoppingCart, at: datetime | None = None) -> dict:
    """Collect every problem that would stop this cart from being checked out."""
    errors = []
    if cart.is_expired(at):
        errors.append("Cart has expired")
    elif cart.is_empty():
        errors.append("Cart is empty")

    repo = current_domain.repository_for(Product)
    for item in cart.ordered_items():
        try:
            product = repo.get(item.product_id)
        except ObjectNotFoundError:
            errors.append(f"{item.product_name or item.product_id} is no longer sold")
            continue
        if not product.is_available_now(at):
            errors.append(f"{product.name} is not available right now")
        if not product.has_stock_for(item.quantity):
            errors.append(
                f"{product.name}: requested quantity ({item.quantity}) exceeds stock ({product.stock_quantity})"
            )
        if item.quantity < (product.min_order_quantity or 1):
            errors.append(f"{product.name}: minimum order quantity is {product.min_order_quantity}")
        if product.max_order_quantity and item.quantity > product.max_order_quantity:
            errors.append(f"{product.name}: maximum order quantity is {product.max_order_quantity}")

    return {"valid": not errors, "errors": errors}
