"""Pydantic schemas for NDIS plan managers."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.common import reject_null


class PlanManagerBase(BaseModel):
    """Base plan manager schema."""
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    billing_email: Optional[EmailStr] = None
    notes: Optional[str] = Field(None, max_length=500)


class PlanManagerCreate(PlanManagerBase):
    """Schema for creating a plan manager."""
    pass


class PlanManagerUpdate(BaseModel):
    """Schema for updating a plan manager."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    billing_email: Optional[EmailStr] = None
    notes: Optional[str] = Field(None, max_length=500)

    not_null = reject_null("name")


class PlanManagerResponse(BaseModel):
    """Schema for plan manager response."""
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    billing_email: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
