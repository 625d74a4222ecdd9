"""API routes for head leases."""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import get_or_404
from app.database import get_db
from app.models.db_models import HeadLease, House, Owner
from app.schemas.common import ApiResponse, MessageResponse
from app.schemas.head_leases import HeadLeaseCreate, HeadLeaseResponse, HeadLeaseUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/head-leases", tags=["head-leases"])


@router.get("", response_model=ApiResponse[List[HeadLeaseResponse]])
async def list_head_leases(house_id: Optional[UUID] = None, db: AsyncSession = Depends(get_db)):
    """List head leases, newest start first, optionally for one house."""
    query = select(HeadLease)
    if house_id:
        query = query.where(HeadLease.house_id == house_id)
    result = await db.execute(query.order_by(HeadLease.start_date.desc()))
    return ApiResponse(data=[HeadLeaseResponse.model_validate(lease) for lease in result.scalars().all()])


@router.post("", response_model=ApiResponse[HeadLeaseResponse], status_code=201)
async def create_head_lease(lease_data: HeadLeaseCreate, db: AsyncSession = Depends(get_db)):
    await get_or_404(db, House, lease_data.house_id, "House")
    await get_or_404(db, Owner, lease_data.owner_id, "Owner")

    lease = HeadLease(**lease_data.model_dump())
    db.add(lease)
    await db.commit()
    await db.refresh(lease)
    logger.info(f"Created head lease {lease.id} for house {lease.house_id}")
    return ApiResponse(data=HeadLeaseResponse.model_validate(lease))


@router.get("/{lease_id}", response_model=ApiResponse[HeadLeaseResponse])
async def get_head_lease(lease_id: UUID, db: AsyncSession = Depends(get_db)):
    lease = await get_or_404(db, HeadLease, lease_id, "Head lease")
    return ApiResponse(data=HeadLeaseResponse.model_validate(lease))


@router.put("/{lease_id}", response_model=ApiResponse[HeadLeaseResponse])
async def update_head_lease(
    lease_id: UUID,
    update: HeadLeaseUpdate,
    db: AsyncSession = Depends(get_db),
):
    lease = await get_or_404(db, HeadLease, lease_id, "Head lease")
    changes = update.model_dump(exclude_unset=True)
    if "owner_id" in changes:
        await get_or_404(db, Owner, changes["owner_id"], "Owner")

    for field, value in changes.items():
        setattr(lease, field, value)
    if lease.end_date and lease.end_date < lease.start_date:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")

    await db.commit()
    await db.refresh(lease)
    return ApiResponse(data=HeadLeaseResponse.model_validate(lease))


@router.delete("/{lease_id}", response_model=ApiResponse[MessageResponse])
async def delete_head_lease(lease_id: UUID, db: AsyncSession = Depends(get_db)):
    lease = await get_or_404(db, HeadLease, lease_id, "Head lease")
    await db.delete(lease)
    await db.commit()
    logger.info(f"Deleted head lease {lease_id}")
    return ApiResponse(data=MessageResponse(message="Head lease deleted"))
