"""Pydantic schemas for property owners."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.common import reject_null


class OwnerBase(BaseModel):
    """Base owner schema."""
    name: str = Field(..., min_length=1, max_length=255)
    owner_type: str = Field(..., min_length=1, max_length=50)
    primary_contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class OwnerCreate(OwnerBase):
    """Schema for creating an owner."""
    pass


class OwnerUpdate(BaseModel):
    """Schema for updating an owner."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    owner_type: Optional[str] = Field(None, min_length=1, max_length=50)
    primary_contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    not_null = reject_null("name", "owner_type")


class OwnerResponse(BaseModel):
    """Schema for owner response."""
    id: UUID
    name: str
    owner_type: str
    primary_contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
