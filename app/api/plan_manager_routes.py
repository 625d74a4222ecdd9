"""API routes for NDIS plan managers."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import get_or_404
from app.database import get_db
from app.models.db_models import PlanManager, Resident
from app.schemas.common import ApiResponse, MessageResponse
from app.schemas.plan_managers import PlanManagerCreate, PlanManagerResponse, PlanManagerUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plan-managers", tags=["plan-managers"])


@router.get("", response_model=ApiResponse[List[PlanManagerResponse]])
async def list_plan_managers(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(PlanManager).order_by(PlanManager.name))
    return ApiResponse(data=[PlanManagerResponse.model_validate(p) for p in result.scalars().all()])


@router.post("", response_model=ApiResponse[PlanManagerResponse], status_code=201)
async def create_plan_manager(data: PlanManagerCreate, db: AsyncSession = Depends(get_db)):
    plan_manager = PlanManager(**data.model_dump())
    db.add(plan_manager)
    await db.commit()
    await db.refresh(plan_manager)
    logger.info(f"Created plan manager {plan_manager.id}: {plan_manager.name}")
    return ApiResponse(data=PlanManagerResponse.model_validate(plan_manager))


@router.get("/{plan_manager_id}", response_model=ApiResponse[PlanManagerResponse])
async def get_plan_manager(plan_manager_id: UUID, db: AsyncSession = Depends(get_db)):
    plan_manager = await get_or_404(db, PlanManager, plan_manager_id, "Plan manager")
    return ApiResponse(data=PlanManagerResponse.model_validate(plan_manager))


@router.put("/{plan_manager_id}", response_model=ApiResponse[PlanManagerResponse])
async def update_plan_manager(
    plan_manager_id: UUID,
    update: PlanManagerUpdate,
    db: AsyncSession = Depends(get_db),
):
    plan_manager = await get_or_404(db, PlanManager, plan_manager_id, "Plan manager")
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(plan_manager, field, value)

    await db.commit()
    await db.refresh(plan_manager)
    return ApiResponse(data=PlanManagerResponse.model_validate(plan_manager))


@router.delete("/{plan_manager_id}", response_model=ApiResponse[MessageResponse])
async def delete_plan_manager(plan_manager_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a plan manager no resident is assigned to."""
    plan_manager = await get_or_404(db, PlanManager, plan_manager_id, "Plan manager")

    resident_count = (await db.execute(
        select(func.count(Resident.id)).where(Resident.plan_manager_id == plan_manager_id)
    )).scalar()
    if resident_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete plan manager with {resident_count} resident(s)",
        )

    await db.delete(plan_manager)
    await db.commit()
    logger.info(f"Deleted plan manager {plan_manager_id}")
    return ApiResponse(data=MessageResponse(message="Plan manager deleted"))
