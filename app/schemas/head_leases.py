"""Pydantic schemas for head leases."""
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.db_models import HeadLeaseStatus, RentFrequency
from app.schemas.common import reject_null

URL_PATTERN = re.compile(r"^https?://\S+$")


def _document_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if not URL_PATTERN.match(value):
        raise ValueError("Invalid URL")
    return value


class HeadLeaseBase(BaseModel):
    """Base head lease schema."""
    house_id: UUID
    owner_id: UUID
    reference: Optional[str] = Field(None, max_length=100)
    start_date: date
    end_date: Optional[date] = None
    status: HeadLeaseStatus
    rent_amount: Optional[Decimal] = Field(None, ge=0)
    rent_frequency: RentFrequency = RentFrequency.WEEKLY
    review_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)
    document_url: Optional[str] = Field(None, max_length=500)

    @field_validator("document_url")
    @classmethod
    def validate_document_url(cls, v: Optional[str]) -> Optional[str]:
        return _document_url(v)


class HeadLeaseCreate(HeadLeaseBase):
    """Schema for creating a head lease."""

    @model_validator(mode="after")
    def check_dates(self) -> "HeadLeaseCreate":
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class HeadLeaseUpdate(BaseModel):
    """Schema for updating a head lease."""
    owner_id: Optional[UUID] = None
    reference: Optional[str] = Field(None, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[HeadLeaseStatus] = None
    rent_amount: Optional[Decimal] = Field(None, ge=0)
    rent_frequency: Optional[RentFrequency] = None
    review_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)
    document_url: Optional[str] = Field(None, max_length=500)

    not_null = reject_null("owner_id", "start_date", "status", "rent_frequency")

    @field_validator("document_url")
    @classmethod
    def validate_document_url(cls, v: Optional[str]) -> Optional[str]:
        return _document_url(v)


class HeadLeaseResponse(BaseModel):
    """Schema for head lease response."""
    id: UUID
    house_id: UUID
    owner_id: UUID
    reference: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    status: HeadLeaseStatus
    rent_amount: Optional[Decimal] = None
    rent_frequency: RentFrequency
    review_date: Optional[date] = None
    notes: Optional[str] = None
    document_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
