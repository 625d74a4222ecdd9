"""Pydantic schemas for suppliers."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.db_models import SupplierType
from app.schemas.common import reject_null


class SupplierBase(BaseModel):
    """Base supplier schema."""
    name: str = Field(..., min_length=1, max_length=100)
    supplier_type: SupplierType
    contact_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    notes: Optional[str] = None
    is_active: bool = True


class SupplierCreate(SupplierBase):
    """Schema for creating a supplier."""
    pass


class SupplierUpdate(BaseModel):
    """Schema for updating a supplier."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    supplier_type: Optional[SupplierType] = None
    contact_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    not_null = reject_null("name", "supplier_type", "is_active")


class SupplierResponse(BaseModel):
    """Schema for supplier response."""
    id: UUID
    name: str
    supplier_type: SupplierType
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
