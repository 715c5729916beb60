from app.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Date, Text, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdMixin, TimestampMixin
from app.modules.customers.models import Customer
import enum


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"      # Created, not yet sent
    SENT = "sent"            # Emailed to the customer
    PAID = "paid"            # Payment received
    CANCELLED = "cancelled"  # Cancelled, a credit note offsets it


class InvoiceKind(str, enum.Enum):
    SERVICE = "service"          # Monthly service agreement
    ONE_TIME = "one_time"        # Manually created charge
    CREDIT_NOTE = "credit_note"  # Offsets a cancelled invoice


class Invoice(Base, IdMixin, TimestampMixin):
    __tablename__ = "invoices"

    invoice_number = Column(Integer, nullable=False, unique=True, index=True)
    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default=InvoiceKind.SERVICE.value)
    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True)

    # Dates
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    period_start = Column(Date, nullable=True, index=True)
    period_end = Column(Date, nullable=True)

    # Amounts (amount excludes VAT)
    amount = Column(Numeric(15, 2), nullable=False)
    vat_rate = Column(Numeric(5, 2), nullable=False)
    vat_amount = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)

    description = Column(Text, nullable=True)
    service_type = Column(String(100), nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Credit notes point at the invoice they offset
    original_invoice_id = Column(Uuid, ForeignKey("invoices.id"), nullable=True)

    customer = relationship(Customer)

    @property
    def is_credit_note(self) -> bool:
        return self.kind == InvoiceKind.CREDIT_NOTE.value
