"""BDD tests for cart totals and limits."""

import pytest
from bakery.cart.cart import ShoppingCart
from bakery.shared.preferences import DeliveryPreference
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/cart.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an empty cart for customer "{customer_id}"'), target_fixture="cart")
def empty_cart(customer_id):
    return ShoppingCart.create(customer_id=customer_id)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
def _add(cart, error, quantity, product_id, price, customizations=None):
    try:
        cart.add_item(product_id, quantity, price, customizations=customizations)
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('{quantity:d} units of "{product_id}" at {price:f} are added with a {cost:f} customization'))
def add_customized_units(cart, error, quantity, product_id, price, cost):
    _add(cart, error, quantity, product_id, price, [{"name": "Filling", "value": "Custard", "additional_cost": cost}])


@when(parsers.cfparse('{quantity:d} units of "{product_id}" at {price:f} are added'))
def add_units(cart, error, quantity, product_id, price):
    _add(cart, error, quantity, product_id, price)


@when(parsers.cfparse('{quantity:d} unit of "{product_id}" at {price:f} is added'))
def add_unit(cart, error, quantity, product_id, price):
    _add(cart, error, quantity, product_id, price)


@when(parsers.cfparse('delivery to "{street}, {city}" is chosen'))
def choose_delivery(cart, street, city):
    cart.set_delivery(DeliveryPreference(type="delivery", street=street, city=city))


@when(parsers.cfparse("a discount of {amount:f} is applied"))
def apply_discount(cart, amount):
    cart.apply_discount(amount)


@when("the cart is cleared")
def clear_cart(cart):
    cart.clear()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart {field} is {amount:f}"))
def cart_amount(cart, field, amount):
    attribute = {
        "subtotal": "subtotal",
        "tax": "tax",
        "total": "total",
        "payable amount": "payable",
        "delivery fee": "delivery_fee",
    }.get(field)
    if attribute is None:
        assert field == "discount"
        assert cart.discount == pytest.approx(amount)
    else:
        assert getattr(cart.totals, attribute) == pytest.approx(amount)


@then(parsers.cfparse("the cart holds {count:d} units"))
def cart_holds(cart, count):
    assert cart.item_count() == count


@then(parsers.cfparse('the cart delivery type is "{delivery_type}"'))
def cart_delivery_type(cart, delivery_type):
    assert cart.delivery.type == delivery_type
