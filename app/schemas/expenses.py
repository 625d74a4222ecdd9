"""Pydantic schemas for property and organisation expenses."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.db_models import ExpenseFrequency, ExpenseScope, ExpenseStatus, RecordSource
from app.schemas.common import reject_null

PROPERTY_EXPENSE_CATEGORIES = (
    "head_lease",
    "utilities",
    "maintenance",
    "cleaning",
    "insurance",
    "compliance",
    "repairs",
    "other",
    "rent",
    "rates",
    "management_fee",
)

ORGANISATION_EXPENSE_CATEGORIES = (
    "salaries",
    "software",
    "office_rent",
    "marketing",
    "accounting",
    "corporate_insurance",
    "vehicles",
    "other",
)


def categories_for_scope(scope: ExpenseScope) -> tuple:
    """Return the allowed categories for an expense scope."""
    if scope == ExpenseScope.ORGANISATION:
        return ORGANISATION_EXPENSE_CATEGORIES
    return PROPERTY_EXPENSE_CATEGORIES


class ExpenseBase(BaseModel):
    """Base expense schema."""
    house_id: Optional[UUID] = None
    scope: ExpenseScope = ExpenseScope.PROPERTY
    category: str
    description: str = Field(..., min_length=1, max_length=500)
    reference: Optional[str] = Field(None, max_length=100)
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    frequency: ExpenseFrequency = ExpenseFrequency.ONE_OFF
    occurred_at: date
    due_date: Optional[date] = None
    paid_at: Optional[date] = None
    status: ExpenseStatus = ExpenseStatus.DRAFT
    supplier_id: Optional[UUID] = None
    notes: Optional[str] = None
    is_snapshot: bool = False
    meter_reading: Optional[Decimal] = None
    reading_unit: Optional[str] = Field(None, max_length=20)


class ExpenseCreate(ExpenseBase):
    """Schema for creating an expense."""

    @model_validator(mode="after")
    def check_scope(self) -> "ExpenseCreate":
        if self.scope == ExpenseScope.PROPERTY and self.house_id is None:
            raise ValueError("house_id is required for property expenses")
        if self.scope == ExpenseScope.ORGANISATION:
            self.house_id = None
        if self.category not in categories_for_scope(self.scope):
            raise ValueError(
                f"Invalid category '{self.category}' for {self.scope.value} expenses"
            )
        return self


class ExpenseUpdate(BaseModel):
    """Schema for updating an expense."""
    category: Optional[str] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    reference: Optional[str] = Field(None, max_length=100)
    amount: Optional[Decimal] = Field(None, ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    frequency: Optional[ExpenseFrequency] = None
    occurred_at: Optional[date] = None
    due_date: Optional[date] = None
    paid_at: Optional[date] = None
    status: Optional[ExpenseStatus] = None
    supplier_id: Optional[UUID] = None
    notes: Optional[str] = None
    is_snapshot: Optional[bool] = None
    meter_reading: Optional[Decimal] = None
    reading_unit: Optional[str] = Field(None, max_length=20)

    not_null = reject_null(
        "category", "description", "amount", "frequency", "occurred_at", "status", "is_snapshot",
    )


class ExpenseResponse(ExpenseBase):
    """Schema for expense response."""
    id: UUID
    source: RecordSource
    automation_id: Optional[UUID] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
