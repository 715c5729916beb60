"""
Value objects handed to the document renderer.

They are frozen so a rendered PDF can always be traced back to one immutable
input; the renderer never touches the ORM.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

PDF_CONTENT_TYPE = "application/pdf"


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"
    QUOTE = "quote"


FILENAME_PREFIXES = {
    DocumentKind.INVOICE: "faktura",
    DocumentKind.CREDIT_NOTE: "kreditfaktura",
    DocumentKind.QUOTE: "offert",
}


@dataclass(frozen=True)
class IssuerProfile:
    name: Optional[str] = None
    org_number: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    bankgiro: Optional[str] = None
    plusgiro: Optional[str] = None
    swish: Optional[str] = None

    @property
    def payment_channels(self) -> List[Tuple[str, str]]:
        channels = [("Bankgiro", self.bankgiro), ("Plusgiro", self.plusgiro), ("Swish", self.swish)]
        return [(label, value) for label, value in channels if value]

    @property
    def has_payment_channels(self) -> bool:
        return bool(self.payment_channels)


@dataclass(frozen=True)
class Recipient:
    name: str = ""
    company_name: Optional[str] = None
    org_number: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class DocumentLine:
    description: str
    total: Decimal
    details: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class DocumentModel:
    kind: DocumentKind
    number: int
    issue_date: date
    recipient: Recipient
    subtotal: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    lines: Tuple[DocumentLine, ...] = field(default_factory=tuple)
    due_date: Optional[date] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    valid_until: Optional[date] = None
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    @property
    def filename(self) -> str:
        return f"{FILENAME_PREFIXES[self.kind]}-{self.number}.pdf"
