from app.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Date, Text, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdMixin, TimestampMixin
from app.modules.customers.models import Customer
import enum


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Quote(Base, IdMixin, TimestampMixin):
    __tablename__ = "quotes"

    quote_number = Column(Integer, nullable=False, unique=True, index=True)
    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=QuoteStatus.DRAFT.value, index=True)

    valid_from = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)  # NULL means open-ended

    # Cached totals, recomputed whenever items change
    vat_rate = Column(Numeric(5, 2), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    sent_to_email = Column(String(200), nullable=True)

    # Customer response via the public link
    public_token = Column(String(64), nullable=True, unique=True, index=True)
    customer_response_at = Column(DateTime(timezone=True), nullable=True)
    customer_response_note = Column(Text, nullable=True)

    customer = relationship(Customer)
    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.sort_order",
    )


class QuoteItem(Base, IdMixin, TimestampMixin):
    __tablename__ = "quote_items"

    quote_id = Column(Uuid, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    details = Column(Text, nullable=True)
    quantity = Column(Numeric(10, 3), nullable=False, default=1)
    unit = Column(String(20), nullable=False, default="st")
    unit_price = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price
    sort_order = Column(Integer, nullable=False, default=0)

    quote = relationship("Quote", back_populates="items")
