from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import UUID
from datetime import datetime


class CompanySettingsUpdate(BaseModel):
    company_name: Optional[str] = Field(None, max_length=200)
    org_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=200)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    bankgiro: Optional[str] = Field(None, max_length=50)
    plusgiro: Optional[str] = Field(None, max_length=50)
    swish: Optional[str] = Field(None, max_length=50)


class CompanySettingsOut(BaseModel):
    id: Optional[UUID] = None
    company_name: Optional[str] = None
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
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
