"""Pydantic schemas for funding contracts and contract calculations."""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.db_models import BillingFrequency, ContractStatus, ContractType, DrawdownRate
from app.schemas.common import reject_null

MAX_CONTRACT_AMOUNT = Decimal("999999.99")


class ContractBase(BaseModel):
    """Base funding contract schema."""
    contract_type: ContractType
    original_amount: Decimal = Field(..., gt=0, le=MAX_CONTRACT_AMOUNT, decimal_places=2)
    current_balance: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    renewal_date: Optional[date] = None
    drawdown_rate: DrawdownRate = DrawdownRate.MONTHLY
    auto_drawdown: bool = False
    description: Optional[str] = None
    support_item_code: Optional[str] = Field(None, max_length=20)
    daily_support_item_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    auto_billing_enabled: bool = False
    automated_drawdown_frequency: Optional[BillingFrequency] = None
    next_run_date: Optional[date] = None


class ContractCreate(ContractBase):
    """Schema for creating a funding contract."""

    @model_validator(mode="after")
    def check_consistency(self) -> "ContractCreate":
        if self.current_balance is not None and self.current_balance > self.original_amount:
            raise ValueError("Current balance cannot exceed original amount")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        if self.start_date and self.renewal_date and self.renewal_date <= self.start_date:
            raise ValueError("Renewal date must be after start date")
        return self


class ContractUpdate(BaseModel):
    """Schema for updating a funding contract. Status changes go through the status endpoint."""
    contract_type: Optional[ContractType] = None
    original_amount: Optional[Decimal] = Field(None, gt=0, le=MAX_CONTRACT_AMOUNT, decimal_places=2)
    current_balance: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    renewal_date: Optional[date] = None
    drawdown_rate: Optional[DrawdownRate] = None
    auto_drawdown: Optional[bool] = None
    description: Optional[str] = None
    support_item_code: Optional[str] = Field(None, max_length=20)
    daily_support_item_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    auto_billing_enabled: Optional[bool] = None
    automated_drawdown_frequency: Optional[BillingFrequency] = None
    next_run_date: Optional[date] = None

    not_null = reject_null(
        "contract_type", "original_amount", "current_balance",
        "drawdown_rate", "auto_drawdown", "auto_billing_enabled",
    )


class ContractStatusChange(BaseModel):
    """Schema for a contract status transition."""
    status: ContractStatus


class ContractResponse(BaseModel):
    """Schema for funding contract response."""
    id: UUID
    resident_id: UUID
    contract_type: ContractType
    contract_status: ContractStatus
    original_amount: Decimal
    current_balance: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    renewal_date: Optional[date] = None
    drawdown_rate: DrawdownRate
    auto_drawdown: bool
    description: Optional[str] = None
    support_item_code: Optional[str] = None
    daily_support_item_cost: Optional[Decimal] = None
    auto_billing_enabled: bool
    automated_drawdown_frequency: Optional[BillingFrequency] = None
    next_run_date: Optional[date] = None
    last_drawdown_date: Optional[date] = None
    parent_contract_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BalanceSummary(BaseModel):
    """Aggregate balances across contracts."""
    total_original: Decimal
    total_current: Decimal
    total_drawn_down: Decimal
    active_contracts: int
    expiring_soon: int


# Rate calculator
class RateCalculationRequest(BaseModel):
    """Input for the contract rate calculator."""
    amount: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class RateCalculationResponse(BaseModel):
    """Calculated contract rates."""
    total_days: int
    daily_rate: Decimal
    weekly_rate: Decimal
    fortnightly_rate: Decimal


# Eligibility
class EligibilityCheck(BaseModel):
    """Result of a single eligibility check."""
    passed: bool
    reasons: List[str] = []


class EligibilityResponse(BaseModel):
    """Combined eligibility result for automated billing."""
    contract_id: UUID
    is_eligible: bool
    checks: Dict[str, EligibilityCheck]
    reasons: List[str] = []


# Billing run
class BillingRunRequest(BaseModel):
    """Request to run automated contract billing."""
    run_date: Optional[date] = None
    catch_up_mode: bool = False


class BillingRunError(BaseModel):
    """A contract that could not be billed."""
    contract_id: UUID
    resident_id: Optional[UUID] = None
    error: str


class BillingRunSummary(BaseModel):
    """Totals for a billing run."""
    total_amount: Decimal
    average_amount: Decimal
    frequency_breakdown: Dict[str, int]


class BillingRunResponse(BaseModel):
    """Result of a billing run."""
    processed_contracts: int
    successful_transactions: int
    failed_transactions: int
    skipped: int
    transaction_ids: List[str] = []
    errors: List[BillingRunError] = []
    summary: BillingRunSummary
