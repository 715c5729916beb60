"""
Money and VAT arithmetic for invoices and quotes.

Everything runs on ``Decimal`` so the same input always yields the same digits.
VAT is rounded exactly once, on the aggregate subtotal, never per line.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Union

from app.common.errors import InvalidLineItem
from app.core.config import settings

Number = Union[int, str, Decimal]

ROUNDING_POLICIES = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}

# Scale of the stored columns: quantity Numeric(10, 3), money and rates Numeric(_, 2)
QUANTITY_PLACES = 3
MONEY_PLACES = 2
LINE_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


def to_decimal(value: Any, field: str, places: Optional[int] = None) -> Decimal:
    """
    Convert user input to a finite, non-negative Decimal or raise InvalidLineItem.

    With ``places`` set, values with more decimals than that are rejected
    instead of being rounded silently by the database column.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidLineItem(f"{field} must be a number, got {value!r}")
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 becomes Decimal('0.1')
        value = str(value)
    try:
        result = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidLineItem(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidLineItem(f"{field} must be finite, got {value!r}")
    if result < 0:
        raise InvalidLineItem(f"{field} cannot be negative, got {value!r}")
    if places is not None and result != result.quantize(Decimal(1).scaleb(-places)):
        raise InvalidLineItem(f"{field} allows at most {places} decimals, got {value!r}")
    return result


class VatCalculator:
    """Helper for subtotal, VAT and total calculation"""

    def __init__(self, rounding: str = "half_up", quantum: Number = "1"):
        if rounding not in ROUNDING_POLICIES:
            raise ValueError(f"Unknown VAT rounding policy: {rounding}")
        self.rounding = rounding
        self.quantum = Decimal(quantum)

    def compute_line_total(self, quantity: Any, unit_price: Any) -> Decimal:
        """``quantity * unit_price`` rounded to öre, the value stored on the line."""
        quantity = to_decimal(quantity, "quantity", QUANTITY_PLACES)
        unit_price = to_decimal(unit_price, "unit_price", MONEY_PLACES)
        return (quantity * unit_price).quantize(LINE_QUANTUM, rounding=ROUNDING_POLICIES[self.rounding])

    def compute_vat(self, amount: Any, vat_rate: Any) -> Decimal:
        """
        Round ``amount * vat_rate / 100`` to the smallest printed unit.

        Args:
            amount: Taxable base (a subtotal, never a single line)
            vat_rate: Percentage, e.g. 25 for 25%

        Returns:
            The VAT amount using the configured rounding policy
        """
        amount = to_decimal(amount, "amount", MONEY_PLACES)
        vat_rate = to_decimal(vat_rate, "vat_rate", MONEY_PLACES)
        raw = amount * vat_rate / Decimal(100)
        return raw.quantize(self.quantum, rounding=ROUNDING_POLICIES[self.rounding])

    def compute_totals(self, lines: Iterable[Any], vat_rate: Any) -> Totals:
        """
        Sum line totals and add VAT once on the aggregate.

        ``lines`` may hold mappings or objects with ``quantity`` and
        ``unit_price``.
        """
        subtotal = Decimal(0)
        for line in lines:
            quantity, unit_price = _line_values(line)
            subtotal += self.compute_line_total(quantity, unit_price)
        vat_amount = self.compute_vat(subtotal, vat_rate)
        return Totals(subtotal=subtotal, vat_amount=vat_amount, total=subtotal + vat_amount)

    def invoice_amounts(self, amount: Any, vat_rate: Any) -> Totals:
        """Totals for a single-amount invoice (recurring service fee, one-time charge)."""
        amount = to_decimal(amount, "amount", MONEY_PLACES)
        vat_amount = self.compute_vat(amount, vat_rate)
        return Totals(subtotal=amount, vat_amount=vat_amount, total=amount + vat_amount)


def _line_values(line: Any):
    if isinstance(line, Mapping):
        return line.get("quantity"), line.get("unit_price")
    return getattr(line, "quantity", None), getattr(line, "unit_price", None)


vat_calculator = VatCalculator(rounding=settings.VAT_ROUNDING, quantum=settings.MONEY_QUANTUM)


def compute_line_total(quantity: Any, unit_price: Any) -> Decimal:
    return vat_calculator.compute_line_total(quantity, unit_price)


def compute_totals(lines: Iterable[Any], vat_rate: Any) -> Totals:
    return vat_calculator.compute_totals(lines, vat_rate)
