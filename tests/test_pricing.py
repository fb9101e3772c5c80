from decimal import Decimal

import pytest

from storefront.services.pricing import LineItem, freeze, order_total, to_money


def test_freeze_records_price_to_the_cent():
    line = freeze(1, Decimal("10"), 3)

    assert line == LineItem(product_id=1, quantity=3, unit_price=Decimal("10.00"))
    assert line.subtotal == Decimal("30.00")


def test_line_items_are_immutable():
    line = freeze(1, Decimal("1.00"), 1)

    with pytest.raises(AttributeError):
        line.unit_price = Decimal("2.00")


@pytest.mark.parametrize("value, expected", [
    ("0.125", "0.12"),
    ("0.135", "0.14"),
    ("2.005", "2.00"),
    (1.1, "1.10"),
    (7, "7.00"),
])
def test_to_money_uses_bankers_rounding(value, expected):
    assert to_money(value) == Decimal(expected)


def test_order_total_sums_lines():
    lines = [freeze(1, "19.99", 3), freeze(2, "5.01", 2), freeze(3, "0.10", 7)]

    assert order_total(lines) == Decimal("70.69")


def test_order_total_of_nothing_is_zero():
    assert order_total([]) == Decimal("0.00")
