"""Pydantic schemas for residents and their contact links."""
import re
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.models.db_models import Gender, ResidentStatus
from app.schemas.common import reject_null
from app.schemas.contacts import ContactResponse

AU_PHONE_PATTERN = re.compile(r"^(\+61|0)[2-9]\d{8}$")


def _normalise_phone(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    phone = re.sub(r"\s+", "", value)
    if not AU_PHONE_PATTERN.match(phone):
        raise ValueError("Please enter a valid Australian phone number")
    return phone


def _validate_dob(value: Optional[date]) -> Optional[date]:
    if value is not None and value >= date.today():
        raise ValueError("Date of birth must be in the past")
    return value


class ResidentBase(BaseModel):
    """Base resident schema."""
    house_id: Optional[UUID] = None
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    ndis_id: Optional[str] = Field(None, min_length=8, max_length=12)
    status: ResidentStatus = ResidentStatus.DRAFT
    notes: Optional[str] = Field(None, max_length=500)
    plan_manager_id: Optional[UUID] = None
    room_label: Optional[str] = Field(None, max_length=50)
    move_in_date: Optional[date] = None
    move_out_date: Optional[date] = None


class ResidentCreate(ResidentBase):
    """Schema for creating a resident."""

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_phone(v)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: Optional[date]) -> Optional[date]:
        return _validate_dob(v)

    @model_validator(mode="after")
    def check_move_dates(self) -> "ResidentCreate":
        if self.move_in_date and self.move_out_date and self.move_out_date < self.move_in_date:
            raise ValueError("Move-out date cannot be before move-in date")
        return self


class ResidentUpdate(BaseModel):
    """Schema for updating a resident."""
    house_id: Optional[UUID] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    ndis_id: Optional[str] = Field(None, min_length=8, max_length=12)
    notes: Optional[str] = Field(None, max_length=500)
    plan_manager_id: Optional[UUID] = None
    room_label: Optional[str] = Field(None, max_length=50)
    move_in_date: Optional[date] = None
    move_out_date: Optional[date] = None

    not_null = reject_null("first_name", "last_name")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_phone(v)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: Optional[date]) -> Optional[date]:
        return _validate_dob(v)


class ResidentStatusUpdate(BaseModel):
    """Schema for changing resident status."""
    status: ResidentStatus
    reason: Optional[str] = None


class ResidentAssign(BaseModel):
    """Schema for assigning a resident to a house."""
    resident_id: UUID
    room_label: Optional[str] = Field(None, max_length=50)
    move_in_date: Optional[date] = None


class ResidentUnassign(BaseModel):
    """Schema for removing a resident from a house."""
    resident_id: UUID
    move_out_date: Optional[date] = None


class ResidentResponse(BaseModel):
    """Schema for resident response."""
    id: UUID
    house_id: Optional[UUID] = None
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    ndis_id: Optional[str] = None
    status: ResidentStatus
    notes: Optional[str] = None
    plan_manager_id: Optional[UUID] = None
    room_label: Optional[str] = None
    move_in_date: Optional[date] = None
    move_out_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Resident contacts
class ResidentContactCreate(BaseModel):
    """Schema for linking a contact to a resident."""
    contact_id: UUID
    relationship_note: Optional[str] = Field(None, max_length=255)


class ResidentContactResponse(BaseModel):
    """Schema for a resident contact link."""
    id: UUID
    resident_id: UUID
    contact_id: UUID
    relationship_note: Optional[str] = None
    contact: ContactResponse
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
