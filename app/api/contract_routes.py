"""API routes for funding contracts, rate calculation and billing runs."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import raise_for_error
from app.database import get_db
from app.schemas.common import ApiResponse, MessageResponse
from app.schemas.contracts import (
    BalanceSummary,
    BillingRunRequest,
    BillingRunResponse,
    ContractResponse,
    ContractStatusChange,
    ContractUpdate,
    EligibilityCheck,
    EligibilityResponse,
    RateCalculationRequest,
    RateCalculationResponse,
)
from app.services.billing_run import get_billing_run_service
from app.services.contract_rate_calculator import calculate_contract_rates
from app.services.contract_service import get_contract_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contracts", tags=["contracts"])


# =============================================================================
# COLLECTION ROUTES
# =============================================================================

@router.get("/summary", response_model=ApiResponse[BalanceSummary])
async def get_balance_summary(db: AsyncSession = Depends(get_db)):
    """Balance totals across all contracts."""
    summary = await get_contract_service().get_summary(db)
    return ApiResponse(data=summary)


@router.get("/expiring", response_model=ApiResponse[List[ContractResponse]])
async def list_expiring_contracts(db: AsyncSession = Depends(get_db)):
    """Active contracts that need renewal."""
    contracts = await get_contract_service().get_expiring(db)
    return ApiResponse(data=[ContractResponse.model_validate(c) for c in contracts])


@router.post("/calculate-rates", response_model=ApiResponse[RateCalculationResponse])
async def calculate_rates(request: RateCalculationRequest):
    """Daily, weekly and fortnightly rates for a contract amount and period."""
    try:
        rates = calculate_contract_rates(request.amount, request.start_date, request.end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ApiResponse(data=RateCalculationResponse(
        total_days=rates.total_days,
        daily_rate=rates.daily_rate,
        weekly_rate=rates.weekly_rate,
        fortnightly_rate=rates.fortnightly_rate,
    ))


@router.post("/billing-run", response_model=ApiResponse[BillingRunResponse])
async def run_billing(
    request: BillingRunRequest,
    db: AsyncSession = Depends(get_db),
):
    """Generate draft drawdown transactions for every contract due today."""
    try:
        result = await get_billing_run_service().run(
            db, run_date=request.run_date, catch_up_mode=request.catch_up_mode
        )
    except Exception as e:
        logger.error(f"Billing run failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Billing run failed")
    return ApiResponse(data=result)


# =============================================================================
# SINGLE CONTRACT ROUTES
# =============================================================================

@router.get("/{contract_id}", response_model=ApiResponse[ContractResponse])
async def get_contract(contract_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        contract = await get_contract_service().get_contract(db, contract_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=ContractResponse.model_validate(contract))


@router.put("/{contract_id}", response_model=ApiResponse[ContractResponse])
async def update_contract(
    contract_id: UUID,
    update: ContractUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        contract = await get_contract_service().update_contract(db, contract_id, update)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=ContractResponse.model_validate(contract))


@router.delete("/{contract_id}", response_model=ApiResponse[MessageResponse])
async def delete_contract(contract_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await get_contract_service().delete_contract(db, contract_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=MessageResponse(message="Contract deleted"))


@router.post("/{contract_id}/status", response_model=ApiResponse[ContractResponse])
async def change_contract_status(
    contract_id: UUID,
    change: ContractStatusChange,
    db: AsyncSession = Depends(get_db),
):
    """Move a contract through its status lifecycle."""
    try:
        contract = await get_contract_service().change_status(db, contract_id, change.status)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=ContractResponse.model_validate(contract))


@router.post("/{contract_id}/renew", response_model=ApiResponse[ContractResponse], status_code=201)
async def renew_contract(contract_id: UUID, db: AsyncSession = Depends(get_db)):
    """Create a Draft renewal of a contract."""
    try:
        renewal = await get_contract_service().renew_contract(db, contract_id)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=ContractResponse.model_validate(renewal))


@router.get("/{contract_id}/eligibility", response_model=ApiResponse[EligibilityResponse])
async def check_eligibility(contract_id: UUID, db: AsyncSession = Depends(get_db)):
    """Report each automated billing eligibility check for a contract."""
    try:
        result = await get_contract_service().check_eligibility(db, contract_id)
    except LookupError as e:
        raise_for_error(e)

    return ApiResponse(data=EligibilityResponse(
        contract_id=contract_id,
        is_eligible=result.is_eligible,
        checks={
            name: EligibilityCheck(passed=check.passed, reasons=check.reasons)
            for name, check in result.checks.items()
        },
        reasons=result.reasons,
    ))
