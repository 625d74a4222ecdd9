"""Pydantic schemas for transactions, drawdown and audit trail."""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.db_models import AuditAction, DrawdownStatus, RecordSource, TransactionStatus
from app.schemas.common import reject_null

MIN_AUDIT_COMMENT_LENGTH = 10


class SortField(str, Enum):
    """Sortable transaction columns."""
    ID = "id"
    OCCURRED_AT = "occurred_at"
    AMOUNT = "amount"
    STATUS = "status"
    SERVICE_CODE = "service_code"
    CREATED_AT = "created_at"


class SortDirection(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


class BulkAction(str, Enum):
    """Bulk transaction actions."""
    POST = "post"
    VOID = "void"


# Transactions
class TransactionBase(BaseModel):
    """Base transaction schema."""
    resident_id: UUID
    contract_id: UUID
    occurred_at: datetime
    service_code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    amount: Optional[Decimal] = Field(None, ge=0)
    note: Optional[str] = None
    service_item_code: Optional[str] = Field(None, max_length=20)
    support_agreement_id: Optional[str] = None
    participant_id: Optional[str] = None


class TransactionCreate(TransactionBase):
    """Schema for creating a transaction."""
    pass


class TransactionUpdate(BaseModel):
    """Schema for updating a draft transaction."""
    occurred_at: Optional[datetime] = None
    service_code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    amount: Optional[Decimal] = Field(None, ge=0)
    note: Optional[str] = None
    audit_comment: str

    not_null = reject_null("occurred_at", "service_code", "quantity", "unit_price", "amount")

    @field_validator("audit_comment")
    @classmethod
    def check_audit_comment(cls, v: str) -> str:
        if len(v.strip()) < MIN_AUDIT_COMMENT_LENGTH:
            raise ValueError(
                f"Audit comment must be at least {MIN_AUDIT_COMMENT_LENGTH} characters"
            )
        return v.strip()


class TransactionResponse(BaseModel):
    """Schema for transaction response."""
    id: str
    resident_id: UUID
    contract_id: UUID
    resident_name: Optional[str] = None
    occurred_at: datetime
    service_code: str
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    note: Optional[str] = None
    status: TransactionStatus
    drawdown_status: DrawdownStatus
    is_orphaned: bool
    service_item_code: Optional[str] = None
    support_agreement_id: Optional[str] = None
    participant_id: Optional[str] = None
    source: RecordSource
    automation_id: Optional[UUID] = None
    is_automated: bool
    claim_id: Optional[UUID] = None
    created_by: str
    posted_at: Optional[datetime] = None
    posted_by: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[str] = None
    void_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionFilter(BaseModel):
    """Filters shared by list and export."""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    resident_ids: List[UUID] = []
    contract_ids: List[UUID] = []
    house_ids: List[UUID] = []
    statuses: List[TransactionStatus] = []
    service_code: Optional[str] = None
    search: Optional[str] = None


class VoidRequest(BaseModel):
    """Schema for voiding a posted transaction."""
    reason: str = Field(..., min_length=1)


class BulkTransactionRequest(BaseModel):
    """Schema for bulk post/void."""
    action: BulkAction
    transaction_ids: List[str] = Field(..., min_length=1)
    reason: Optional[str] = None

    @model_validator(mode="after")
    def require_void_reason(self) -> "BulkTransactionRequest":
        if self.action == BulkAction.VOID and not (self.reason and self.reason.strip()):
            raise ValueError("Void reason is required")
        return self


class BulkOperationError(BaseModel):
    """A transaction that failed in a bulk operation."""
    transaction_id: str
    error: str


class BulkOperationResult(BaseModel):
    """Result of a bulk operation."""
    processed: int
    failed: int
    errors: List[BulkOperationError] = []


# Drawdown
class RuleResult(BaseModel):
    """Outcome of one drawdown rule."""
    rule: str
    passed: bool
    message: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of drawdown validation."""
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []
    rule_results: List[RuleResult] = []


class DrawdownResponse(BaseModel):
    """Result of processing a drawdown transaction."""
    transaction: TransactionResponse
    validation: ValidationResult


class BalancePreview(BaseModel):
    """Preview of a contract balance before posting."""
    contract_id: UUID
    current_balance: Decimal
    transaction_amount: Decimal
    remaining_after_post: Decimal
    can_post: bool
    warning_message: Optional[str] = None


# Audit
class AuditEntryResponse(BaseModel):
    """Schema for a transaction audit entry."""
    id: UUID
    transaction_id: str
    action: AuditAction
    changes: Optional[Dict[str, Any]] = None
    comment: Optional[str] = None
    user_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
