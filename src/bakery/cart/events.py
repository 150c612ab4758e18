"""Shopping cart events."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from bakery.domain import bakery


@bakery.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart, or its quantity increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity_added = Integer(required=True)
    line_quantity = Integer(required=True)
    unit_price = Float(required=True)


@bakery.event(part_of="ShoppingCart")
class CartItemQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@bakery.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)


@bakery.event(part_of="ShoppingCart")
class CartCleared:
    """All items were removed, either explicitly or by a successful checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String(required=True)
    cleared_at = DateTime(required=True)


@bakery.event(part_of="ShoppingCart")
class CartExpired:
    """A mutation found the cart past its expiry and emptied it first."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    expired_at = DateTime(required=True)


@bakery.event(part_of="ShoppingCart")
class CartDeliveryChosen:
    __version__ = 1

    cart_id = Identifier(required=True)
    delivery_type = String(required=True)
    delivery_fee = Float(required=True)


@bakery.event(part_of="ShoppingCart")
class CartPaymentChosen:
    __version__ = 1

    cart_id = Identifier(required=True)
    method = String(required=True)
    loyalty_points_used = Integer(required=True)


@bakery.event(part_of="ShoppingCart")
class CartDiscountApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    code = String()
    requested_amount = Float(required=True)
    applied_amount = Float(required=True)
