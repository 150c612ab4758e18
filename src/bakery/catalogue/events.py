"""Catalogue events."""

from protean.fields import Boolean, Float, Identifier, Integer, String

from bakery.domain import bakery


@bakery.event(part_of="Product")
class ProductAdded:
    __version__ = 1

    product_id: Identifier(required=True)
    name: String(required=True)
    price: Float(required=True)
    category: String()
    stock_quantity: Integer()


@bakery.event(part_of="Product")
class ProductPriceChanged:
    __version__ = 1

    product_id: Identifier(required=True)
    previous_price: Float(required=True)
    new_price: Float(required=True)


@bakery.event(part_of="Product")
class ProductStockUpdated:
    __version__ = 1

    product_id: Identifier(required=True)
    stock_quantity: Integer(required=True)


@bakery.event(part_of="Product")
class ProductAvailabilityChanged:
    __version__ = 1

    product_id: Identifier(required=True)
    is_available: Boolean(required=True)
