"""API routes for claims: creation, export and funder response reconciliation."""
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, error_response, get_current_user, raise_for_error
from app.config import settings
from app.database import get_db
from app.models.db_models import ClaimStatus
from app.schemas.claims import (
    ClaimCreate,
    ClaimDetailResponse,
    ClaimFilters,
    ClaimHistoryResponse,
    ClaimReconciliationResponse,
    ClaimResponse,
    ClaimStatusUpdate,
    EligibleTransactionsResponse,
    ReconciliationSummary,
)
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.transactions import TransactionResponse
from app.services.claim_service import ClaimExportError, get_claim_service
from app.services.funding_calculations import to_money

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/claims", tags=["claims"])


# =============================================================================
# COLLECTION ROUTES
# =============================================================================

@router.get("/eligible-transactions", response_model=ApiResponse[EligibleTransactionsResponse])
async def get_eligible_transactions(
    resident_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_all: bool = False,
    db: AsyncSession = Depends(get_db),
):
    """Draft transactions that a claim with these filters would pick up."""
    filters = ClaimFilters(
        resident_id=resident_id, date_from=date_from, date_to=date_to, include_all=include_all
    )
    transactions = await get_claim_service().get_eligible_transactions(db, filters)
    total = sum((to_money(t.amount) for t in transactions), Decimal("0.00"))

    return ApiResponse(data=EligibleTransactionsResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        count=len(transactions),
        total_amount=total,
    ))


@router.post("", response_model=ApiResponse[ClaimResponse], status_code=201)
async def create_claim(
    claim_data: ClaimCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft claim from the eligible transactions."""
    try:
        claim = await get_claim_service().create_claim(db, claim_data, user_id)
    except ValueError as e:
        raise_for_error(e)
    return ApiResponse(data=ClaimResponse.model_validate(claim))


@router.get("", response_model=ApiResponse[Page[ClaimResponse]])
async def list_claims(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    status: Optional[ClaimStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    """List claims, newest first."""
    page_size = clamp_page_size(page_size)
    claims, total = await get_claim_service().list_claims(db, status, page, page_size)
    items = [ClaimResponse.model_validate(c) for c in claims]
    return ApiResponse(data=Page.build(items, total, page, page_size))


# =============================================================================
# SINGLE CLAIM ROUTES
# =============================================================================

@router.get("/{claim_id}", response_model=ApiResponse[ClaimDetailResponse])
async def get_claim(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    """Claim with its transactions."""
    service = get_claim_service()
    try:
        claim = await service.get_claim(db, claim_id)
    except LookupError as e:
        raise_for_error(e)

    transactions = await service.get_claim_transactions(db, claim_id)
    # Built from ClaimResponse so the lazy transactions relationship is never touched
    return ApiResponse(data=ClaimDetailResponse(
        **ClaimResponse.model_validate(claim).model_dump(),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    ))


@router.delete("/{claim_id}", response_model=ApiResponse[MessageResponse])
async def delete_claim(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a draft claim and release its transactions."""
    try:
        await get_claim_service().delete_claim(db, claim_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=MessageResponse(message="Claim deleted"))


@router.patch("/{claim_id}/status", response_model=ApiResponse[ClaimResponse])
async def update_claim_status(
    claim_id: UUID,
    status_update: ClaimStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        claim = await get_claim_service().update_status(db, claim_id, status_update.status)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=ClaimResponse.model_validate(claim))


@router.post("/{claim_id}/export")
async def export_claim(
    claim_id: UUID,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Generate the claim CSV and return it as a download."""
    try:
        file_name, content = await get_claim_service().export_claim(db, claim_id, user_id)
    except ClaimExportError as e:
        return error_response(400, str(e), e.details)
    except (LookupError, ValueError) as e:
        raise_for_error(e)

    return StreamingResponse(
        StringIO(content),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={file_name}"},
    )


@router.get("/{claim_id}/download")
async def download_claim_file(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    """Download the last generated claim file."""
    try:
        path = await get_claim_service().get_export_file(db, claim_id)
    except LookupError as e:
        raise_for_error(e)
    return FileResponse(path, media_type="text/csv", filename=path.name)


@router.post("/{claim_id}/upload-response", response_model=ApiResponse[ReconciliationSummary])
async def upload_claim_response(
    claim_id: UUID,
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Reconcile a funder response CSV against the claim's transactions."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    raw = await file.read()
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded")

    try:
        summary = await get_claim_service().reconcile_response(
            db, claim_id, file.filename, content, user_id
        )
    except (LookupError, ValueError) as e:
        raise_for_error(e)

    logger.info(
        f"Reconciled {file.filename} for claim {claim_id}: "
        f"{summary.total_paid} paid, {summary.total_rejected} rejected, {summary.total_errors} errors"
    )
    return ApiResponse(data=summary)


@router.get(
    "/{claim_id}/reconciliations",
    response_model=ApiResponse[List[ClaimReconciliationResponse]],
)
async def list_reconciliations(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        records = await get_claim_service().get_reconciliations(db, claim_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=[ClaimReconciliationResponse.model_validate(r) for r in records])


@router.get("/{claim_id}/history", response_model=ApiResponse[ClaimHistoryResponse])
async def get_claim_history(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    """Reconciliations and files recorded for a claim."""
    service = get_claim_service()
    try:
        claim = await service.get_claim(db, claim_id)
    except LookupError as e:
        raise_for_error(e)

    records = await service.get_reconciliations(db, claim_id)
    return ApiResponse(data=ClaimHistoryResponse(
        claim_id=claim.id,
        claim_number=claim.claim_number,
        reconciliations=[ClaimReconciliationResponse.model_validate(r) for r in records],
        files=service.list_files(claim.claim_number),
    ))


@router.post("/{claim_id}/simulate-completion", response_model=ApiResponse[MessageResponse])
async def simulate_claim_completion(claim_id: UUID, db: AsyncSession = Depends(get_db)):
    """Mark every picked up transaction on the claim as paid."""
    try:
        updated = await get_claim_service().simulate_completion(db, claim_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=MessageResponse(message=f"Marked {updated} transaction(s) as paid"))
