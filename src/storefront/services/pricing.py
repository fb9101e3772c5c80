"""
Price snapshots taken during checkout

Totals are rounded to cents with banker's rounding (ROUND_HALF_EVEN).
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, Union

CENT = Decimal("0.01")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize a value to currency precision"""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class LineItem:
    """One order line with the unit price read under the stock lock"""
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def freeze(product_id: int, unit_price, quantity: int) -> LineItem:
    return LineItem(product_id=product_id, quantity=quantity, unit_price=to_money(unit_price))


def order_total(lines: Iterable[LineItem]) -> Decimal:
    return to_money(sum((line.subtotal for line in lines), Decimal("0")))
