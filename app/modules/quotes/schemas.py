from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from enum import Enum

from app.modules.customers.schemas import CustomerForDocument


class QuoteStatusFilter(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class QuoteItemIn(BaseModel):
    """Amounts are validated by the VAT calculator"""
    description: str = Field(..., min_length=1, max_length=500)
    details: Optional[str] = None
    quantity: Decimal = Decimal(1)
    unit: str = Field(default="st", max_length=20)
    unit_price: Decimal


class QuoteCreate(BaseModel):
    customer_id: Optional[UUID] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = Field(None, description="Omit for the default validity, null for open-ended")
    vat_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[QuoteItemIn] = Field(default_factory=list)


class QuoteUpdate(BaseModel):
    customer_id: Optional[UUID] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    vat_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: Optional[List[QuoteItemIn]] = Field(None, description="When given, replaces all items")


class QuoteItemsReplace(BaseModel):
    items: List[QuoteItemIn]


class QuoteItemOut(BaseModel):
    id: UUID
    description: str
    details: Optional[str] = None
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total: Decimal
    sort_order: int

    class Config:
        from_attributes = True


class QuoteOut(BaseModel):
    id: UUID
    quote_number: int
    customer_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    status: str
    effective_status: str
    is_editable: bool
    valid_from: date
    valid_until: Optional[date] = None
    vat_rate: Decimal
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal
    notes: Optional[str] = None
    terms: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_to_email: Optional[str] = None
    customer_response_at: Optional[datetime] = None
    customer_response_note: Optional[str] = None
    items: List[QuoteItemOut] = []
    customer: Optional[CustomerForDocument] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class QuoteList(BaseModel):
    quotes: List[QuoteOut]
    total: int
    limit: int
    offset: int


class QuoteTransitionRequest(BaseModel):
    action: Literal["mark_sent", "accept", "decline"]


class QuoteResponseRequest(BaseModel):
    """Customer answer submitted from the public quote page"""
    token: str = Field(..., min_length=1, max_length=64)
    accept: bool
    note: Optional[str] = Field(None, max_length=2000)


class QuoteResponseResult(BaseModel):
    success: bool = True
    status: str
