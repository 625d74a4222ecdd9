"""Pydantic schemas for houses."""
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.db_models import AustralianState, HouseStatus
from app.schemas.common import reject_null


class HouseBase(BaseModel):
    """Base house schema."""
    address1: str = Field(..., min_length=3, max_length=120)
    unit: Optional[str] = Field(None, max_length=20)
    suburb: str = Field(..., min_length=1, max_length=100)
    state: AustralianState
    postcode: str = Field(..., pattern=r"^\d{4}$")
    country: str = Field("AU", min_length=2, max_length=2)
    status: HouseStatus = HouseStatus.ACTIVE
    descriptor: Optional[str] = Field(None, max_length=255)
    bedroom_count: int = Field(0, ge=0)
    notes: Optional[str] = None
    go_live_date: Optional[date] = None
    owner_id: Optional[UUID] = None


class HouseCreate(HouseBase):
    """Schema for creating a house."""
    pass


class HouseUpdate(BaseModel):
    """Schema for updating a house."""
    address1: Optional[str] = Field(None, min_length=3, max_length=120)
    unit: Optional[str] = Field(None, max_length=20)
    suburb: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[AustralianState] = None
    postcode: Optional[str] = Field(None, pattern=r"^\d{4}$")
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    status: Optional[HouseStatus] = None
    descriptor: Optional[str] = Field(None, max_length=255)
    bedroom_count: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    go_live_date: Optional[date] = None
    owner_id: Optional[UUID] = None

    not_null = reject_null(
        "address1", "suburb", "state", "postcode", "country", "status", "bedroom_count",
    )


class HouseResponse(HouseBase):
    """Schema for house response."""
    id: UUID
    display_name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
