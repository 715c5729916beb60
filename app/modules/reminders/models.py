from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Date, Time, Text, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from app.common.mixins import IdMixin, TimestampMixin
from app.modules.customers.models import Customer


class Reminder(Base, IdMixin, TimestampMixin):
    """Follow-up reminder. Maintained by the CRM, only read here."""
    __tablename__ = "reminders"

    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False, default="follow_up")
    reminder_date = Column(Date, nullable=False, index=True)
    reminder_time = Column(Time, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)

    customer = relationship(Customer)
