from decimal import Decimal

import pytest

from order_service.orders.models import OrderItem
from order_service.orders.pricing import (
    compute_totals,
    items_subtotal,
    round2,
    shipping_fee_for,
    to_minor_units,
)


def _item(price, quantity, product="p"):
    return OrderItem(product=product, name=f"produit {product}", price=price, quantity=quantity)


def test_totals_below_free_shipping_threshold():
    items = [_item(20.0, 2, "p1"), _item(15.0, 1, "p2")]
    totals = compute_totals(items, shipping_fee_for(items_subtotal(items)))
    assert totals == {"items_price": 55.0, "tax_price": 8.25, "shipping_price": 10.0, "total_price": 73.25}

def test_totals_above_free_shipping_threshold():
    items = [_item(75.0, 2)]
    totals = compute_totals(items, shipping_fee_for(items_subtotal(items)))
    assert totals["items_price"] == 150.0
    assert totals["tax_price"] == 22.5
    assert totals["shipping_price"] == 0.0
    assert totals["total_price"] == 172.5

@pytest.mark.parametrize("subtotal,fee", [
    (Decimal("100"), Decimal("10.00")),
    (Decimal("100.01"), Decimal("0.00")),
    (Decimal("0.50"), Decimal("10.00")),
])
def test_shipping_fee_is_free_strictly_above_100(subtotal, fee):
    assert shipping_fee_for(subtotal) == fee

def test_total_is_sum_of_parts_without_float_noise():
    items = [_item(0.1, 3, "a"), _item(19.99, 7, "b"), _item(3.33, 3, "c")]
    totals = compute_totals(items, shipping_fee_for(items_subtotal(items)))
    parts = round2(totals["items_price"]) + round2(totals["tax_price"]) + round2(totals["shipping_price"])
    assert round2(totals["total_price"]) == parts
    assert totals["items_price"] == 150.22
    assert totals["shipping_price"] == 0.0

def test_round2_rounds_half_up():
    assert round2(0.125) == Decimal("0.13")
    assert round2(2.675) == Decimal("2.68")

def test_to_minor_units():
    assert to_minor_units(19.99) == 1999
    assert to_minor_units(Decimal("10")) == 1000
    assert to_minor_units(0) == 0
