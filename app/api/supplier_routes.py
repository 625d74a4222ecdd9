"""API routes for suppliers."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, get_or_404, paginate
from app.config import settings
from app.database import get_db
from app.models.db_models import Expense, Supplier, SupplierType
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.suppliers import SupplierCreate, SupplierResponse, SupplierUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])


@router.get("", response_model=ApiResponse[Page[SupplierResponse]])
async def list_suppliers(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    supplier_type: Optional[SupplierType] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List suppliers by name, with a type filter and name search."""
    page_size = clamp_page_size(page_size)
    query = select(Supplier)

    if supplier_type:
        query = query.where(Supplier.supplier_type == supplier_type)
    if is_active is not None:
        query = query.where(Supplier.is_active.is_(is_active))
    if search:
        query = query.where(Supplier.name.ilike(f"%{search}%"))

    suppliers, total = await paginate(db, query.order_by(Supplier.name), page, page_size)
    items = [SupplierResponse.model_validate(s) for s in suppliers]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[SupplierResponse], status_code=201)
async def create_supplier(supplier_data: SupplierCreate, db: AsyncSession = Depends(get_db)):
    supplier = Supplier(**supplier_data.model_dump())
    db.add(supplier)
    await db.commit()
    await db.refresh(supplier)

    logger.info(f"Created supplier {supplier.id}: {supplier.name}")
    return ApiResponse(data=SupplierResponse.model_validate(supplier))


@router.get("/{supplier_id}", response_model=ApiResponse[SupplierResponse])
async def get_supplier(supplier_id: UUID, db: AsyncSession = Depends(get_db)):
    supplier = await get_or_404(db, Supplier, supplier_id, "Supplier")
    return ApiResponse(data=SupplierResponse.model_validate(supplier))


@router.put("/{supplier_id}", response_model=ApiResponse[SupplierResponse])
async def update_supplier(
    supplier_id: UUID,
    update: SupplierUpdate,
    db: AsyncSession = Depends(get_db),
):
    supplier = await get_or_404(db, Supplier, supplier_id, "Supplier")
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(supplier, field, value)

    await db.commit()
    await db.refresh(supplier)
    return ApiResponse(data=SupplierResponse.model_validate(supplier))


@router.delete("/{supplier_id}", response_model=ApiResponse[MessageResponse])
async def delete_supplier(supplier_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a supplier with no expenses. Deactivate it instead if it has any."""
    supplier = await get_or_404(db, Supplier, supplier_id, "Supplier")

    expense_count = (await db.execute(
        select(func.count(Expense.id)).where(Expense.supplier_id == supplier_id)
    )).scalar()
    if expense_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete supplier with {expense_count} expense(s). Deactivate it instead.",
        )

    await db.delete(supplier)
    await db.commit()
    logger.info(f"Deleted supplier {supplier_id}")
    return ApiResponse(data=MessageResponse(message="Supplier deleted"))
