from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from enum import Enum

from app.core.config import settings
from app.modules.customers.schemas import CustomerForDocument, BillableCustomerOut


class InvoiceStatusFilter(str, Enum):
    """Stored statuses plus the derived ``overdue``"""
    PENDING = "pending"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class InvoiceOut(BaseModel):
    id: UUID
    invoice_number: int
    customer_id: UUID
    kind: str
    status: str
    effective_status: str
    invoice_date: date
    due_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    description: Optional[str] = None
    service_type: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    original_invoice_id: Optional[UUID] = None
    customer: Optional[CustomerForDocument] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class InvoiceFilters(BaseModel):
    status: Optional[InvoiceStatusFilter] = None
    customer_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class OneTimeInvoiceCreate(BaseModel):
    customer_id: UUID
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, description="Belopp exkl. moms")
    due_days: int = Field(default=settings.INVOICE_PAYMENT_TERMS_DAYS, ge=0, le=365)


class InvoiceTransitionRequest(BaseModel):
    action: Literal["mark_sent", "mark_paid", "cancel"]


class InvoiceTransitionResult(BaseModel):
    """The transitioned invoice and, on cancel, the credit note that offsets it"""
    invoice: InvoiceOut
    credit_note: Optional[InvoiceOut] = None


class PendingBillingOut(BaseModel):
    year: int
    month: int
    label: str
    customers: List[BillableCustomerOut]


class GenerationResult(BaseModel):
    year: int
    month: int
    created: List[InvoiceOut]
    skipped: int = Field(0, description="Customers invoiced concurrently while generating")
