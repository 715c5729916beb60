from app.database.database import Base
from sqlalchemy import Column, String
from app.common.mixins import IdMixin, TimestampMixin


class CompanySettings(Base, IdMixin, TimestampMixin):
    """Issuer profile printed on invoices and quotes. Single row per installation."""
    __tablename__ = "company_settings"

    company_name = Column(String(200), nullable=True)
    org_number = Column(String(50), nullable=True)
    address = Column(String(200), nullable=True)
    postal_code = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    email = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)

    # Payment channels
    bankgiro = Column(String(50), nullable=True)
    plusgiro = Column(String(50), nullable=True)
    swish = Column(String(50), nullable=True)
