"""Pydantic schemas for claims and response reconciliation."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.db_models import ClaimStatus, TransactionStatus
from app.schemas.transactions import TransactionResponse


class ClaimFilters(BaseModel):
    """Filters used to select draft transactions for a claim."""
    resident_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    include_all: bool = False


class ClaimCreate(ClaimFilters):
    """Schema for creating a claim."""
    pass


class ClaimStatusUpdate(BaseModel):
    """Schema for changing claim status."""
    status: ClaimStatus


class ClaimResponse(BaseModel):
    """Schema for claim response."""
    id: UUID
    claim_number: str
    status: ClaimStatus
    filters: Optional[Dict[str, Any]] = None
    transaction_count: int
    total_amount: Decimal
    file_path: Optional[str] = None
    file_generated_at: Optional[datetime] = None
    file_generated_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClaimDetailResponse(ClaimResponse):
    """Claim with its transactions."""
    transactions: List[TransactionResponse] = []


class EligibleTransactionsResponse(BaseModel):
    """Draft transactions that would be picked up by a claim."""
    transactions: List[TransactionResponse]
    count: int
    total_amount: Decimal


# Response upload
class ReconciliationResult(BaseModel):
    """Outcome for one transaction in a response file."""
    transaction_id: str
    status: TransactionStatus
    amount_mismatch: bool = False
    expected_amount: Optional[Decimal] = None
    response_amount: Optional[Decimal] = None
    note: Optional[str] = None


class ReconciliationSummary(BaseModel):
    """Totals produced by a response upload."""
    claim_id: UUID
    claim_status: ClaimStatus
    total_processed: int
    total_paid: int
    total_rejected: int
    total_errors: int
    total_unmatched: int
    unmatched_ids: List[str] = []
    results: List[ReconciliationResult] = []


class ClaimReconciliationResponse(BaseModel):
    """Schema for a stored reconciliation record."""
    id: UUID
    claim_id: UUID
    file_name: str
    file_path: Optional[str] = None
    total_processed: int
    total_paid: int
    total_rejected: int
    total_errors: int
    total_unmatched: int
    results_json: Optional[Dict[str, Any]] = None
    uploaded_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClaimExportFile(BaseModel):
    """A file written for a claim (export or stored response)."""
    file_name: str
    file_path: str
    size: int
    created_at: datetime


class ClaimHistoryResponse(BaseModel):
    """Reconciliations and files recorded for a claim, newest first."""
    claim_id: UUID
    claim_number: str
    reconciliations: List[ClaimReconciliationResponse] = []
    files: List[ClaimExportFile] = []
