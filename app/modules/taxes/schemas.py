from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List

from app.core.config import settings


class LineInput(BaseModel):
    """Quantity and price as entered; validation happens in the calculator"""
    quantity: Decimal
    unit_price: Decimal


class TotalsRequest(BaseModel):
    items: List[LineInput] = Field(default_factory=list)
    vat_rate: Decimal = Field(default=Decimal(settings.DEFAULT_VAT_RATE), description="Momssats i procent")


class LineTotalOut(BaseModel):
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


class TotalsOut(BaseModel):
    lines: List[LineTotalOut]
    vat_rate: Decimal
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal
