"""API routes for transaction management, drawdown and export."""
import logging
from datetime import date
from decimal import Decimal
from io import BytesIO, StringIO
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import (
    clamp_page_size,
    error_response,
    get_current_user,
    paginate,
    raise_for_error,
    split_csv,
)
from app.config import settings
from app.database import get_db
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.transactions import (
    AuditEntryResponse,
    BalancePreview,
    BulkOperationResult,
    BulkTransactionRequest,
    DrawdownResponse,
    SortDirection,
    SortField,
    TransactionCreate,
    TransactionFilter,
    TransactionResponse,
    TransactionUpdate,
    VoidRequest,
)
from app.services.drawdown_validation import DrawdownValidationError
from app.services.transaction_export import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    export_filename,
    fetch_export_transactions,
    transactions_to_csv,
    transactions_to_xlsx,
)
from app.services.transaction_service import build_transaction_query, get_transaction_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def get_transaction_filters(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    resident_ids: Optional[str] = Query(None, description="Comma-separated resident IDs"),
    contract_ids: Optional[str] = Query(None, description="Comma-separated contract IDs"),
    house_ids: Optional[str] = Query(None, description="Comma-separated house IDs"),
    statuses: Optional[str] = Query(None, description="Comma-separated statuses"),
    service_code: Optional[str] = None,
    search: Optional[str] = None,
) -> TransactionFilter:
    """Parse list and export query parameters into a TransactionFilter."""
    try:
        return TransactionFilter(
            date_from=date_from,
            date_to=date_to,
            resident_ids=split_csv(resident_ids),
            contract_ids=split_csv(contract_ids),
            house_ids=split_csv(house_ids),
            statuses=split_csv(statuses),
            service_code=service_code,
            search=search,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid filter: {e.errors()[0]['msg']}")


def _drawdown_failure(e: DrawdownValidationError):
    return error_response(400, str(e), e.result.model_dump(mode="json"))


# =============================================================================
# COLLECTION ROUTES
# =============================================================================

@router.get("", response_model=ApiResponse[Page[TransactionResponse]])
async def list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    sort_by: SortField = SortField.OCCURRED_AT,
    sort_dir: SortDirection = SortDirection.DESC,
    filters: TransactionFilter = Depends(get_transaction_filters),
    db: AsyncSession = Depends(get_db),
):
    """List transactions with filtering, sorting and pagination."""
    page_size = clamp_page_size(page_size)
    query = build_transaction_query(filters, sort_by, sort_dir)
    transactions, total = await paginate(db, query, page, page_size)
    items = [TransactionResponse.model_validate(t) for t in transactions]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[TransactionResponse], status_code=201)
async def create_transaction(
    transaction_data: TransactionCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft transaction."""
    try:
        txn = await get_transaction_service().create_transaction(db, transaction_data, user_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=TransactionResponse.model_validate(txn))


@router.get("/export")
async def export_transactions(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    sort_by: SortField = SortField.OCCURRED_AT,
    sort_dir: SortDirection = SortDirection.DESC,
    filters: TransactionFilter = Depends(get_transaction_filters),
    db: AsyncSession = Depends(get_db),
):
    """Download the filtered transactions as CSV or Excel."""
    transactions = await fetch_export_transactions(db, filters, sort_by, sort_dir)
    logger.info(f"Exporting {len(transactions)} transactions as {format}")

    if format == "xlsx":
        return StreamingResponse(
            BytesIO(transactions_to_xlsx(transactions)),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={export_filename('xlsx')}"},
        )

    return StreamingResponse(
        StringIO(transactions_to_csv(transactions)),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={export_filename('csv')}"},
    )


@router.get("/balance-preview", response_model=ApiResponse[BalancePreview])
async def preview_balance(
    contract_id: UUID,
    amount: Decimal = Query(..., ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Preview a contract balance before posting an amount against it."""
    try:
        preview = await get_transaction_service().get_balance_preview(db, contract_id, amount)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=preview)


@router.post("/drawdown", response_model=ApiResponse[DrawdownResponse], status_code=201)
async def process_drawdown(
    transaction_data: TransactionCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create, validate and post a drawdown transaction in one step."""
    try:
        txn, validation = await get_transaction_service().process_drawdown_transaction(
            db, transaction_data, user_id
        )
    except DrawdownValidationError as e:
        return _drawdown_failure(e)
    except (LookupError, ValueError) as e:
        raise_for_error(e)

    return ApiResponse(data=DrawdownResponse(
        transaction=TransactionResponse.model_validate(txn),
        validation=validation,
    ))


@router.post("/bulk", response_model=ApiResponse[BulkOperationResult])
async def bulk_transactions(
    request: BulkTransactionRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Post or void many transactions at once."""
    try:
        result = await get_transaction_service().bulk_operation(
            db, request.action, request.transaction_ids, user_id, request.reason
        )
    except ValueError as e:
        raise_for_error(e)

    logger.info(f"Bulk {request.action.value}: {result.processed} processed, {result.failed} failed")
    return ApiResponse(data=result)


# =============================================================================
# SINGLE TRANSACTION ROUTES
# =============================================================================

@router.get("/{transaction_id}", response_model=ApiResponse[TransactionResponse])
async def get_transaction(transaction_id: str, db: AsyncSession = Depends(get_db)):
    try:
        txn = await get_transaction_service().get_transaction(db, transaction_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=TransactionResponse.model_validate(txn))


@router.put("/{transaction_id}", response_model=ApiResponse[TransactionResponse])
async def update_transaction(
    transaction_id: str,
    update: TransactionUpdate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a draft transaction. An audit comment is required."""
    try:
        txn = await get_transaction_service().update_transaction(db, transaction_id, update, user_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=TransactionResponse.model_validate(txn))


@router.delete("/{transaction_id}", response_model=ApiResponse[MessageResponse])
async def delete_transaction(transaction_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a draft transaction."""
    try:
        await get_transaction_service().delete_transaction(db, transaction_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=MessageResponse(message="Transaction deleted"))


@router.post("/{transaction_id}/post", response_model=ApiResponse[TransactionResponse])
async def post_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Post a draft transaction after drawdown validation."""
    try:
        txn = await get_transaction_service().post_transaction(db, transaction_id, user_id)
    except DrawdownValidationError as e:
        return _drawdown_failure(e)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=TransactionResponse.model_validate(txn))


@router.post("/{transaction_id}/void", response_model=ApiResponse[TransactionResponse])
async def void_transaction(
    transaction_id: str,
    request: VoidRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Void a posted transaction and refund the contract."""
    try:
        txn = await get_transaction_service().void_transaction(
            db, transaction_id, user_id, request.reason
        )
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=TransactionResponse.model_validate(txn))


@router.get("/{transaction_id}/audit", response_model=ApiResponse[List[AuditEntryResponse]])
async def get_transaction_audit(transaction_id: str, db: AsyncSession = Depends(get_db)):
    """Audit trail for a transaction, newest first."""
    try:
        entries = await get_transaction_service().get_audit_trail(db, transaction_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=[AuditEntryResponse.model_validate(entry) for entry in entries])
