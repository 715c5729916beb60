"""
Swedish display formatting, independent of the process locale.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

SWEDISH_MONTHS = (
    "januari", "februari", "mars", "april", "maj", "juni",
    "juli", "augusti", "september", "oktober", "november", "december",
)


def format_number(value: Decimal) -> str:
    """1234 -> '1 234', 1234.5 -> '1 234,50'"""
    value = Decimal(value)
    if value == value.to_integral_value():
        return f"{int(value):,}".replace(",", " ")
    return f"{value:,.2f}".replace(",", " ").replace(".", ",")


def format_currency(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return f"{format_number(value)} kr"


def format_quantity(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f").replace(".", ",")


def format_percent(value: Decimal) -> str:
    return format_quantity(value)


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def month_label(value: date) -> str:
    """date(2026, 3, 1) -> 'mars 2026'"""
    return f"{SWEDISH_MONTHS[value.month - 1]} {value.year}"
