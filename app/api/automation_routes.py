"""API routes for automations, their runs and the scheduler entry point."""
import logging
import secrets
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import raise_for_error
from app.config import settings
from app.database import get_db
from app.models.db_models import AutomationType
from app.schemas.automations import (
    AutomationCreate,
    AutomationResponse,
    AutomationRunResponse,
    AutomationToggle,
    AutomationUpdate,
    PreflightResponse,
    RunNowResponse,
    SchedulerResponse,
)
from app.schemas.common import ApiResponse, MessageResponse
from app.services.automation_service import get_automation_service, to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/automations", tags=["automations"])


def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """Require `Authorization: Bearer <CRON_SECRET>` when a secret is configured."""
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


# =============================================================================
# COLLECTION ROUTES
# =============================================================================

@router.get("/scheduler", response_model=ApiResponse[SchedulerResponse])
async def run_scheduler(
    _: None = Depends(verify_cron_secret),
    db: AsyncSession = Depends(get_db),
):
    """Run every enabled automation that is due. Called by an external cron."""
    result = await get_automation_service().run_due_automations(db)
    logger.info(f"Scheduler processed {result.processed} automations")
    return ApiResponse(data=result)


@router.get("", response_model=ApiResponse[List[AutomationResponse]])
async def list_automations(
    type: Optional[AutomationType] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    automations = await get_automation_service().list_automations(db, type)
    return ApiResponse(data=[to_response(a) for a in automations])


@router.post("", response_model=ApiResponse[AutomationResponse], status_code=201)
async def create_automation(automation_data: AutomationCreate, db: AsyncSession = Depends(get_db)):
    """Create an automation and schedule its first run."""
    try:
        automation = await get_automation_service().create_automation(db, automation_data)
    except ValueError as e:
        raise_for_error(e)
    return ApiResponse(data=to_response(automation))


# =============================================================================
# SINGLE AUTOMATION ROUTES
# =============================================================================

@router.get("/{automation_id}", response_model=ApiResponse[AutomationResponse])
async def get_automation(automation_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        automation = await get_automation_service().get_automation(db, automation_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=to_response(automation))


@router.put("/{automation_id}", response_model=ApiResponse[AutomationResponse])
async def update_automation(
    automation_id: UUID,
    update: AutomationUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        automation = await get_automation_service().update_automation(db, automation_id, update)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=to_response(automation))


@router.delete("/{automation_id}", response_model=ApiResponse[MessageResponse])
async def delete_automation(automation_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        await get_automation_service().delete_automation(db, automation_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=MessageResponse(message="Automation deleted"))


@router.post("/{automation_id}/toggle", response_model=ApiResponse[AutomationResponse])
async def toggle_automation(
    automation_id: UUID,
    toggle: AutomationToggle,
    db: AsyncSession = Depends(get_db),
):
    """Enable or disable an automation."""
    try:
        automation = await get_automation_service().toggle_automation(
            db, automation_id, toggle.is_enabled
        )
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=to_response(automation))


@router.get("/{automation_id}/run-now", response_model=ApiResponse[PreflightResponse])
async def preflight_automation(automation_id: UUID, db: AsyncSession = Depends(get_db)):
    """Check whether an automation can be run right now."""
    try:
        preflight = await get_automation_service().preflight(db, automation_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=PreflightResponse(can_run=preflight.can_run, reason=preflight.reason))


@router.post("/{automation_id}/run-now", response_model=ApiResponse[RunNowResponse])
async def run_automation_now(automation_id: UUID, db: AsyncSession = Depends(get_db)):
    """Run an automation immediately."""
    try:
        run, result = await get_automation_service().run_now(db, automation_id)
    except LookupError as e:
        raise_for_error(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ApiResponse(data=RunNowResponse(
        success=result.success,
        summary=result.summary,
        error=result.error,
        run=AutomationRunResponse.model_validate(run),
    ))


@router.get("/{automation_id}/runs", response_model=ApiResponse[List[AutomationRunResponse]])
async def list_automation_runs(
    automation_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Recent runs of an automation, newest first."""
    try:
        runs = await get_automation_service().list_runs(db, automation_id, limit)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=[AutomationRunResponse.model_validate(r) for r in runs])
