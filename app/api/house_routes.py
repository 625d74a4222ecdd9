"""API routes for houses."""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, get_or_404, paginate, raise_for_error
from app.config import settings
from app.database import get_db
from app.models.db_models import AustralianState, House, HouseStatus, Owner, Resident
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.financials import HouseFinancialsResponse, HouseOccupancyResponse, OccupancyMap
from app.schemas.houses import HouseCreate, HouseResponse, HouseUpdate
from app.schemas.residents import ResidentAssign, ResidentResponse, ResidentUnassign
from app.services.financials import get_house_financials
from app.services.occupancy import get_all_occupancy, get_house_occupancy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/houses", tags=["houses"])


@router.get("", response_model=ApiResponse[Page[HouseResponse]])
async def list_houses(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    status: Optional[HouseStatus] = None,
    state: Optional[AustralianState] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List houses with filtering and pagination."""
    page_size = clamp_page_size(page_size)
    query = select(House)

    if status:
        query = query.where(House.status == status)
    if state:
        query = query.where(House.state == state)
    if search:
        term = f"%{search}%"
        query = query.where(
            or_(House.address1.ilike(term), House.suburb.ilike(term), House.descriptor.ilike(term))
        )

    houses, total = await paginate(db, query.order_by(House.created_at.desc()), page, page_size)
    items = [HouseResponse.model_validate(h) for h in houses]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[HouseResponse], status_code=201)
async def create_house(house_data: HouseCreate, db: AsyncSession = Depends(get_db)):
    """Create a house."""
    if house_data.owner_id:
        await get_or_404(db, Owner, house_data.owner_id, "Owner")

    house = House(**house_data.model_dump())
    db.add(house)
    await db.commit()
    await db.refresh(house)

    logger.info(f"Created house {house.id}: {house.display_name}")
    return ApiResponse(data=HouseResponse.model_validate(house))


@router.get("/occupancy", response_model=ApiResponse[OccupancyMap])
async def list_house_occupancy(db: AsyncSession = Depends(get_db)):
    """Current bedroom occupancy of every house, keyed by house id."""
    return ApiResponse(data=await get_all_occupancy(db))


@router.get("/{house_id}", response_model=ApiResponse[HouseResponse])
async def get_house(house_id: UUID, db: AsyncSession = Depends(get_db)):
    house = await get_or_404(db, House, house_id, "House")
    return ApiResponse(data=HouseResponse.model_validate(house))


@router.put("/{house_id}", response_model=ApiResponse[HouseResponse])
async def update_house(
    house_id: UUID,
    update: HouseUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a house."""
    house = await get_or_404(db, House, house_id, "House")
    changes = update.model_dump(exclude_unset=True)
    if changes.get("owner_id"):
        await get_or_404(db, Owner, changes["owner_id"], "Owner")

    for field, value in changes.items():
        setattr(house, field, value)

    await db.commit()
    await db.refresh(house)
    return ApiResponse(data=HouseResponse.model_validate(house))


@router.delete("/{house_id}", response_model=ApiResponse[MessageResponse])
async def delete_house(house_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a house that has no residents."""
    house = await get_or_404(db, House, house_id, "House")

    resident_count = (await db.execute(
        select(func.count(Resident.id)).where(Resident.house_id == house_id)
    )).scalar()
    if resident_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete house with {resident_count} resident(s). Move them first.",
        )

    await db.delete(house)
    await db.commit()
    logger.info(f"Deleted house {house_id}")
    return ApiResponse(data=MessageResponse(message="House deleted"))


@router.get("/{house_id}/residents", response_model=ApiResponse[List[ResidentResponse]])
async def list_house_residents(house_id: UUID, db: AsyncSession = Depends(get_db)):
    """List the residents of a house."""
    await get_or_404(db, House, house_id, "House")
    result = await db.execute(
        select(Resident)
        .where(Resident.house_id == house_id)
        .order_by(Resident.last_name, Resident.first_name)
    )
    return ApiResponse(data=[ResidentResponse.model_validate(r) for r in result.scalars().all()])


@router.post("/{house_id}/residents/assign", response_model=ApiResponse[ResidentResponse])
async def assign_resident(
    house_id: UUID,
    assignment: ResidentAssign,
    db: AsyncSession = Depends(get_db),
):
    """Move a resident without a house into this house."""
    await get_or_404(db, House, house_id, "House")
    resident = await get_or_404(db, Resident, assignment.resident_id, "Resident")
    if resident.house_id:
        raise HTTPException(
            status_code=400,
            detail="Resident is already assigned to a house. Please unassign them first.",
        )

    resident.house_id = house_id
    resident.room_label = assignment.room_label
    resident.move_in_date = assignment.move_in_date
    resident.move_out_date = None

    await db.commit()
    await db.refresh(resident)
    logger.info(f"Assigned resident {resident.id} to house {house_id}")
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.delete("/{house_id}/residents/unassign", response_model=ApiResponse[ResidentResponse])
async def unassign_resident(
    house_id: UUID,
    unassignment: ResidentUnassign,
    db: AsyncSession = Depends(get_db),
):
    """Remove a resident from this house."""
    await get_or_404(db, House, house_id, "House")
    resident = await get_or_404(db, Resident, unassignment.resident_id, "Resident")
    if resident.house_id != house_id:
        raise HTTPException(status_code=400, detail="Resident is not assigned to this house")

    resident.house_id = None
    resident.room_label = None
    if unassignment.move_out_date:
        resident.move_out_date = unassignment.move_out_date

    await db.commit()
    await db.refresh(resident)
    logger.info(f"Removed resident {resident.id} from house {house_id}")
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.get("/{house_id}/occupancy", response_model=ApiResponse[HouseOccupancyResponse])
async def get_occupancy(house_id: UUID, db: AsyncSession = Depends(get_db)):
    """Current occupancy and twelve months of history."""
    try:
        occupancy = await get_house_occupancy(db, house_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=occupancy)


@router.get("/{house_id}/financials", response_model=ApiResponse[HouseFinancialsResponse])
async def get_financials(
    house_id: UUID,
    months: int = Query(12, ge=1, le=120),
    db: AsyncSession = Depends(get_db),
):
    """Monthly income and expenses for the last `months` months."""
    try:
        financials = await get_house_financials(db, house_id, months)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=financials)
