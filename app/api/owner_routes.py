"""API routes for property owners."""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import get_or_404
from app.database import get_db
from app.models.db_models import HeadLease, House, Owner
from app.schemas.common import ApiResponse, MessageResponse
from app.schemas.houses import HouseResponse
from app.schemas.owners import OwnerCreate, OwnerResponse, OwnerUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/owners", tags=["owners"])


@router.get("", response_model=ApiResponse[List[OwnerResponse]])
async def list_owners(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Owner).order_by(Owner.name))
    return ApiResponse(data=[OwnerResponse.model_validate(o) for o in result.scalars().all()])


@router.post("", response_model=ApiResponse[OwnerResponse], status_code=201)
async def create_owner(owner_data: OwnerCreate, db: AsyncSession = Depends(get_db)):
    owner = Owner(**owner_data.model_dump())
    db.add(owner)
    await db.commit()
    await db.refresh(owner)
    logger.info(f"Created owner {owner.id}: {owner.name}")
    return ApiResponse(data=OwnerResponse.model_validate(owner))


@router.get("/{owner_id}", response_model=ApiResponse[OwnerResponse])
async def get_owner(owner_id: UUID, db: AsyncSession = Depends(get_db)):
    owner = await get_or_404(db, Owner, owner_id, "Owner")
    return ApiResponse(data=OwnerResponse.model_validate(owner))


@router.put("/{owner_id}", response_model=ApiResponse[OwnerResponse])
async def update_owner(
    owner_id: UUID,
    update: OwnerUpdate,
    db: AsyncSession = Depends(get_db),
):
    owner = await get_or_404(db, Owner, owner_id, "Owner")
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(owner, field, value)

    await db.commit()
    await db.refresh(owner)
    return ApiResponse(data=OwnerResponse.model_validate(owner))


@router.delete("/{owner_id}", response_model=ApiResponse[MessageResponse])
async def delete_owner(owner_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete an owner that no house or head lease references."""
    owner = await get_or_404(db, Owner, owner_id, "Owner")

    house_count = (await db.execute(
        select(func.count(House.id)).where(House.owner_id == owner_id)
    )).scalar()
    if house_count:
        raise HTTPException(
            status_code=400, detail=f"Cannot delete owner with {house_count} house(s)"
        )

    lease_count = (await db.execute(
        select(func.count(HeadLease.id)).where(HeadLease.owner_id == owner_id)
    )).scalar()
    if lease_count:
        raise HTTPException(
            status_code=400, detail=f"Cannot delete owner with {lease_count} head lease(s)"
        )

    await db.delete(owner)
    await db.commit()
    logger.info(f"Deleted owner {owner_id}")
    return ApiResponse(data=MessageResponse(message="Owner deleted"))


@router.get("/{owner_id}/houses", response_model=ApiResponse[List[HouseResponse]])
async def list_owner_houses(owner_id: UUID, db: AsyncSession = Depends(get_db)):
    await get_or_404(db, Owner, owner_id, "Owner")
    result = await db.execute(
        select(House).where(House.owner_id == owner_id).order_by(House.address1)
    )
    return ApiResponse(data=[HouseResponse.model_validate(h) for h in result.scalars().all()])
