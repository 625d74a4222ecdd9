"""API routes for residents, their contacts and their funding contracts."""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, get_or_404, paginate, raise_for_error
from app.config import settings
from app.database import get_db
from app.models.db_models import (
    Contact,
    House,
    PlanManager,
    Resident,
    ResidentContact,
    ResidentStatus,
    Transaction,
)
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.contracts import ContractCreate, ContractResponse
from app.schemas.financials import ClaimSummaryResponse
from app.schemas.residents import (
    ResidentContactCreate,
    ResidentContactResponse,
    ResidentCreate,
    ResidentResponse,
    ResidentStatusUpdate,
    ResidentUpdate,
)
from app.services.contract_service import get_contract_service
from app.services.financials import get_resident_claim_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/residents", tags=["residents"])


async def _check_references(db: AsyncSession, values: dict):
    if values.get("house_id"):
        await get_or_404(db, House, values["house_id"], "House")
    if values.get("plan_manager_id"):
        await get_or_404(db, PlanManager, values["plan_manager_id"], "Plan manager")


# =============================================================================
# RESIDENTS
# =============================================================================

@router.get("", response_model=ApiResponse[Page[ResidentResponse]])
async def list_residents(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    house_id: Optional[UUID] = None,
    status: Optional[ResidentStatus] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List residents with filtering and pagination."""
    page_size = clamp_page_size(page_size)
    query = select(Resident)

    if house_id:
        query = query.where(Resident.house_id == house_id)
    if status:
        query = query.where(Resident.status == status)
    if search:
        term = f"%{search}%"
        query = query.where(
            or_(
                Resident.first_name.ilike(term),
                Resident.last_name.ilike(term),
                Resident.ndis_id.ilike(term),
            )
        )

    query = query.order_by(Resident.last_name, Resident.first_name)
    residents, total = await paginate(db, query, page, page_size)
    items = [ResidentResponse.model_validate(r) for r in residents]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[ResidentResponse], status_code=201)
async def create_resident(resident_data: ResidentCreate, db: AsyncSession = Depends(get_db)):
    """Create a resident."""
    values = resident_data.model_dump()
    await _check_references(db, values)

    resident = Resident(**values)
    db.add(resident)
    await db.commit()
    await db.refresh(resident)

    logger.info(f"Created resident {resident.id}: {resident.full_name}")
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.get("/{resident_id}", response_model=ApiResponse[ResidentResponse])
async def get_resident(resident_id: UUID, db: AsyncSession = Depends(get_db)):
    resident = await get_or_404(db, Resident, resident_id, "Resident")
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.put("/{resident_id}", response_model=ApiResponse[ResidentResponse])
async def update_resident(
    resident_id: UUID,
    update: ResidentUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a resident. Status changes go through the status endpoint."""
    resident = await get_or_404(db, Resident, resident_id, "Resident")
    changes = update.model_dump(exclude_unset=True)
    await _check_references(db, changes)

    for field, value in changes.items():
        setattr(resident, field, value)

    await db.commit()
    await db.refresh(resident)
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.patch("/{resident_id}/status", response_model=ApiResponse[ResidentResponse])
async def change_resident_status(
    resident_id: UUID,
    status_update: ResidentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change a resident's status."""
    resident = await get_or_404(db, Resident, resident_id, "Resident")
    old_status = resident.status
    resident.status = status_update.status

    await db.commit()
    await db.refresh(resident)

    logger.info(
        f"Resident {resident_id} status {old_status.value} -> {resident.status.value}"
        + (f" ({status_update.reason})" if status_update.reason else "")
    )
    return ApiResponse(data=ResidentResponse.model_validate(resident))


@router.delete("/{resident_id}", response_model=ApiResponse[MessageResponse])
async def delete_resident(resident_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a resident that has no transactions."""
    resident = await get_or_404(db, Resident, resident_id, "Resident")

    txn_count = (await db.execute(
        select(func.count(Transaction.id)).where(Transaction.resident_id == resident_id)
    )).scalar()
    if txn_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete resident with {txn_count} transaction(s)",
        )

    await db.delete(resident)
    await db.commit()
    logger.info(f"Deleted resident {resident_id}")
    return ApiResponse(data=MessageResponse(message="Resident deleted"))


# =============================================================================
# CONTACTS
# =============================================================================

@router.get("/{resident_id}/contacts", response_model=ApiResponse[List[ResidentContactResponse]])
async def list_resident_contacts(resident_id: UUID, db: AsyncSession = Depends(get_db)):
    await get_or_404(db, Resident, resident_id, "Resident")
    result = await db.execute(
        select(ResidentContact)
        .where(ResidentContact.resident_id == resident_id)
        .order_by(ResidentContact.created_at)
    )
    links = result.scalars().unique().all()
    return ApiResponse(data=[ResidentContactResponse.model_validate(link) for link in links])


@router.post(
    "/{resident_id}/contacts",
    response_model=ApiResponse[ResidentContactResponse],
    status_code=201,
)
async def link_resident_contact(
    resident_id: UUID,
    link_data: ResidentContactCreate,
    db: AsyncSession = Depends(get_db),
):
    """Link an existing contact to a resident."""
    await get_or_404(db, Resident, resident_id, "Resident")
    await get_or_404(db, Contact, link_data.contact_id, "Contact")

    existing = (await db.execute(
        select(ResidentContact.id).where(
            ResidentContact.resident_id == resident_id,
            ResidentContact.contact_id == link_data.contact_id,
        )
    )).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail="Contact is already linked to this resident")

    link = ResidentContact(resident_id=resident_id, **link_data.model_dump())
    db.add(link)
    await db.commit()

    result = await db.execute(
        select(ResidentContact)
        .where(ResidentContact.id == link.id)
        .execution_options(populate_existing=True)
    )
    return ApiResponse(data=ResidentContactResponse.model_validate(result.scalar_one()))


@router.delete("/{resident_id}/contacts/{contact_id}", response_model=ApiResponse[MessageResponse])
async def unlink_resident_contact(
    resident_id: UUID,
    contact_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ResidentContact).where(
            ResidentContact.resident_id == resident_id,
            ResidentContact.contact_id == contact_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Contact link not found")

    await db.delete(link)
    await db.commit()
    return ApiResponse(data=MessageResponse(message="Contact unlinked"))


# =============================================================================
# CONTRACTS
# =============================================================================

@router.get("/{resident_id}/contracts", response_model=ApiResponse[List[ContractResponse]])
async def list_resident_contracts(resident_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        contracts = await get_contract_service().list_for_resident(db, resident_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=[ContractResponse.model_validate(c) for c in contracts])


@router.post(
    "/{resident_id}/contracts",
    response_model=ApiResponse[ContractResponse],
    status_code=201,
)
async def create_resident_contract(
    resident_id: UUID,
    contract_data: ContractCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a funding contract for a resident."""
    try:
        contract = await get_contract_service().create_contract(db, resident_id, contract_data)
    except (LookupError, ValueError) as e:
        raise_for_error(e)
    return ApiResponse(data=ContractResponse.model_validate(contract))


@router.get("/{resident_id}/claim-summary", response_model=ApiResponse[ClaimSummaryResponse])
async def get_claim_summary(
    resident_id: UUID,
    months: int = Query(0, ge=0, le=120),
    db: AsyncSession = Depends(get_db),
):
    """Monthly transaction totals for a resident; `months=0` covers all time."""
    try:
        summary = await get_resident_claim_summary(db, resident_id, months)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=summary)
