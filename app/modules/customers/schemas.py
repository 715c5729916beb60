from pydantic import BaseModel
from decimal import Decimal
from typing import Optional
from uuid import UUID


class CustomerForDocument(BaseModel):
    """Customer projection embedded in invoice and quote responses"""
    id: UUID
    first_name: str
    last_name: str
    company_name: Optional[str] = None
    org_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None

    class Config:
        from_attributes = True


class BillableCustomerOut(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    company_name: Optional[str] = None
    email: Optional[str] = None
    service_type: Optional[str] = None
    service_price: Optional[Decimal] = None

    class Config:
        from_attributes = True
