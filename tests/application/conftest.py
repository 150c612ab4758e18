"""Shared helpers for tests that go through ``current_domain.process``."""

import json
import threading

import pytest
from bakery.cart.items import AddToCart
from bakery.cart.management import SetCartDelivery, SetCartPayment
from bakery.catalogue.management import AddProduct
from bakery.domain import bakery
from bakery.loyalty.points import AwardBonusPoints
from protean import current_domain

LISBON_ADDRESS = {
    "street": "Rua Augusta 100",
    "city": "Lisboa",
    "postal_code": "1100-053",
    "latitude": 38.7101,
    "longitude": -9.1366,
}


@pytest.fixture()
def add_product():
    def _add(name="Pastel de Nata", price=10.0, **overrides):
        return current_domain.process(AddProduct(name=name, price=price, **overrides), asynchronous=False)

    return _add


@pytest.fixture()
def fill_cart(add_product):
    """Put ``quantity`` units of a fresh product in ``customer_id``'s cart."""

    def _fill(customer_id="cust-001", quantity=2, delivery=False, points=0, product=None, customizations=None):
        product = product or add_product()
        current_domain.process(
            AddToCart(
                customer_id=customer_id,
                product_id=product.id,
                quantity=quantity,
                customizations=json.dumps(customizations) if customizations else None,
            ),
            asynchronous=False,
        )
        if delivery:
            current_domain.process(
                SetCartDelivery(customer_id=customer_id, type="delivery", **LISBON_ADDRESS),
                asynchronous=False,
            )
        if points:
            current_domain.process(
                SetCartPayment(customer_id=customer_id, method="card", loyalty_points_used=points),
                asynchronous=False,
            )
        return product

    return _fill


@pytest.fixture()
def award_bonus():
    def _award(customer_id="cust-001", amount=150):
        return current_domain.process(
            AwardBonusPoints(customer_id=customer_id, amount=amount, description="Welcome bonus"),
            asynchronous=False,
        )

    return _award


@pytest.fixture()
def race():
    """Run each callable on its own thread, all released at once, and collect results and errors."""

    def _race(*calls):
        barrier = threading.Barrier(len(calls))
        results, errors = [], []

        def _run(call):
            with bakery.domain_context():
                barrier.wait()
                try:
                    results.append(call())
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=_run, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    return _race
