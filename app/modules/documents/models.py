from app.database.database import Base
from sqlalchemy import Column, Integer, String
from app.common.mixins import IdMixin, TimestampMixin


class DocumentSequence(Base, IdMixin, TimestampMixin):
    """Numbering counter per document series ("invoice", "quote")"""
    __tablename__ = "document_sequences"

    name = Column(String(20), nullable=False, unique=True)
    current_number = Column(Integer, nullable=False, default=0)
