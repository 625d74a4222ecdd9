"""API routes for contacts."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, get_or_404, paginate
from app.config import settings
from app.database import get_db
from app.models.db_models import Contact
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.contacts import ContactCreate, ContactResponse, ContactUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.get("", response_model=ApiResponse[Page[ContactResponse]])
async def list_contacts(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    page_size = clamp_page_size(page_size)
    query = select(Contact)
    if search:
        term = f"%{search}%"
        query = query.where(
            or_(Contact.name.ilike(term), Contact.email.ilike(term), Contact.role.ilike(term))
        )

    contacts, total = await paginate(db, query.order_by(Contact.name), page, page_size)
    items = [ContactResponse.model_validate(c) for c in contacts]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[ContactResponse], status_code=201)
async def create_contact(contact_data: ContactCreate, db: AsyncSession = Depends(get_db)):
    contact = Contact(**contact_data.model_dump())
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    logger.info(f"Created contact {contact.id}")
    return ApiResponse(data=ContactResponse.model_validate(contact))


@router.get("/{contact_id}", response_model=ApiResponse[ContactResponse])
async def get_contact(contact_id: UUID, db: AsyncSession = Depends(get_db)):
    contact = await get_or_404(db, Contact, contact_id, "Contact")
    return ApiResponse(data=ContactResponse.model_validate(contact))


@router.put("/{contact_id}", response_model=ApiResponse[ContactResponse])
async def update_contact(
    contact_id: UUID,
    update: ContactUpdate,
    db: AsyncSession = Depends(get_db),
):
    contact = await get_or_404(db, Contact, contact_id, "Contact")
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(contact, field, value)

    await db.commit()
    await db.refresh(contact)
    return ApiResponse(data=ContactResponse.model_validate(contact))


@router.delete("/{contact_id}", response_model=ApiResponse[MessageResponse])
async def delete_contact(contact_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a contact along with its resident links."""
    contact = await get_or_404(db, Contact, contact_id, "Contact")
    await db.delete(contact)
    await db.commit()
    logger.info(f"Deleted contact {contact_id}")
    return ApiResponse(data=MessageResponse(message="Contact deleted"))
