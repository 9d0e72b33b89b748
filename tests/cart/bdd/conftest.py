"""Shared BDD fixtures and step definitions for pharmacy carts."""

import pytest
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def outcome():
    """Container for the outcome of the last cart mutation."""
    return {"last": None}


def _item(product_id, quantity, price, **overrides):
    data = {
        "product_id": product_id,
        "name": product_id,
        "pharmacy_name": "Apollo",
        "unit_price": price,
        "quantity": quantity,
        "min_quantity": 1,
        "max_quantity": 5,
        "in_stock": True,
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart collection")
def empty_collection(store):
    assert store.carts == {}


@given(
    parsers.cfparse(
        '{quantity:d} units of "{product_id}" priced {price:f} with a {percent:d} percent discount '
        'are added at "{pharmacy_id}"'
    )
)
@when(
    parsers.cfparse(
        '{quantity:d} units of "{product_id}" priced {price:f} with a {percent:d} percent discount '
        'are added at "{pharmacy_id}"'
    )
)
def add_discounted_item(store, outcome, quantity, product_id, price, percent, pharmacy_id):
    outcome["last"] = store.add_item(
        pharmacy_id,
        _item(product_id, quantity, price, discount_kind="PERCENTAGE", discount_amount=percent),
    )


@given(parsers.cfparse('{quantity:d} units of "{product_id}" priced {price:f} up to {limit:d} are added at "{pharmacy_id}"'))
@when(parsers.cfparse('{quantity:d} units of "{product_id}" priced {price:f} up to {limit:d} are added at "{pharmacy_id}"'))
def add_item_with_limit(store, outcome, quantity, product_id, price, limit, pharmacy_id):
    outcome["last"] = store.add_item(pharmacy_id, _item(product_id, quantity, price, max_quantity=limit))


@given(parsers.cfparse('a prescription item "{product_id}" priced {price:f} is added at "{pharmacy_id}"'))
def add_prescription_item(store, outcome, product_id, price, pharmacy_id):
    outcome["last"] = store.add_item(pharmacy_id, _item(product_id, 1, price, requires_approval=True))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('a cart exists for "{pharmacy_id}"'))
def cart_exists(store, pharmacy_id):
    assert store.get_cart(pharmacy_id) is not None


@then(parsers.cfparse('the "{pharmacy_id}" cart has {count:d} line'))
def cart_has_lines(store, pharmacy_id, count):
    assert len(store.get_cart(pharmacy_id).items) == count


@then(parsers.cfparse('the "{pharmacy_id}" line for "{product_id}" has quantity {quantity:d}'))
def line_has_quantity(store, pharmacy_id, product_id, quantity):
    assert store.item_quantity(pharmacy_id, product_id) == quantity


@then(parsers.cfparse('the "{pharmacy_id}" subtotal is {amount:f}'))
def subtotal_is(store, pharmacy_id, amount):
    assert store.get_cart(pharmacy_id).current_totals.subtotal == pytest.approx(amount)


@then(parsers.cfparse('the "{pharmacy_id}" total discount is {amount:f}'))
def total_discount_is(store, pharmacy_id, amount):
    assert store.get_cart(pharmacy_id).current_totals.total_discount == pytest.approx(amount)


@then(parsers.cfparse('the "{pharmacy_id}" delivery fee is {amount:f}'))
def delivery_fee_is(store, pharmacy_id, amount):
    assert store.get_cart(pharmacy_id).current_totals.delivery_fee == pytest.approx(amount)


@then(parsers.cfparse('the "{pharmacy_id}" total is subtotal plus delivery fee plus tax'))
def total_is_sum_of_parts(store, pharmacy_id):
    totals = store.get_cart(pharmacy_id).current_totals
    assert totals.total == pytest.approx(totals.subtotal + totals.delivery_fee + totals.tax_amount)
