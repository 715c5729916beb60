"""
Customer read model.

Customer CRUD lives outside the billing core; these columns are what invoice
generation, quotes and documents read (and what quote acceptance updates).
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Numeric, Date, Text
from app.common.mixins import IdMixin, TimestampMixin
import enum


class CustomerStatus(enum.Enum):
    LEAD = "lead"
    CONTACTED = "contacted"
    NEGOTIATING = "negotiating"
    CUSTOMER = "customer"
    CHURNED = "churned"


class Customer(Base, IdMixin, TimestampMixin):
    __tablename__ = "customers"

    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    company_name = Column(String(200), nullable=True)
    org_number = Column(String(50), nullable=True)
    email = Column(String(200), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(200), nullable=True)
    postal_code = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    # Stored as plain string so statuses added by the CRM do not break reads
    status = Column(String(20), nullable=False, default=CustomerStatus.LEAD.value)
    has_purchased = Column(Boolean, nullable=False, default=False)

    # Service agreement
    has_service_agreement = Column(Boolean, nullable=False, default=False)
    service_type = Column(String(100), nullable=True)
    service_price = Column(Numeric(15, 2), nullable=True)
    service_start_date = Column(Date, nullable=True)
    service_renewal_date = Column(Date, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def has_billable_agreement(self) -> bool:
        """Active agreement with a price we can put on an invoice"""
        return bool(self.has_service_agreement and self.service_price and self.service_price > 0)
