"""API routes for property and organisation expenses."""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import clamp_page_size, get_current_user, get_or_404, paginate
from app.config import settings
from app.database import get_db
from app.models.db_models import Expense, ExpenseScope, ExpenseStatus, House, Supplier
from app.schemas.common import ApiResponse, MessageResponse, Page
from app.schemas.expenses import ExpenseCreate, ExpenseResponse, ExpenseUpdate, categories_for_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.get("", response_model=ApiResponse[Page[ExpenseResponse]])
async def list_expenses(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    scope: Optional[ExpenseScope] = None,
    house_id: Optional[UUID] = None,
    category: Optional[str] = None,
    status: Optional[ExpenseStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """List expenses, newest first."""
    page_size = clamp_page_size(page_size)
    query = select(Expense)

    if scope:
        query = query.where(Expense.scope == scope)
    if house_id:
        query = query.where(Expense.house_id == house_id)
    if category:
        query = query.where(Expense.category == category)
    if status:
        query = query.where(Expense.status == status)
    if date_from:
        query = query.where(Expense.occurred_at >= date_from)
    if date_to:
        query = query.where(Expense.occurred_at <= date_to)

    query = query.order_by(Expense.occurred_at.desc(), Expense.created_at.desc())
    expenses, total = await paginate(db, query, page, page_size)
    items = [ExpenseResponse.model_validate(e) for e in expenses]
    return ApiResponse(data=Page.build(items, total, page, page_size))


@router.post("", response_model=ApiResponse[ExpenseResponse], status_code=201)
async def create_expense(
    expense_data: ExpenseCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an expense against a house or the organisation."""
    if expense_data.house_id:
        await get_or_404(db, House, expense_data.house_id, "House")
    if expense_data.supplier_id:
        await get_or_404(db, Supplier, expense_data.supplier_id, "Supplier")

    expense = Expense(**expense_data.model_dump(), created_by=user_id)
    db.add(expense)
    await db.commit()
    await db.refresh(expense)

    logger.info(f"Created {expense.scope.value} expense {expense.id} for ${expense.amount}")
    return ApiResponse(data=ExpenseResponse.model_validate(expense))


@router.get("/{expense_id}", response_model=ApiResponse[ExpenseResponse])
async def get_expense(expense_id: UUID, db: AsyncSession = Depends(get_db)):
    expense = await get_or_404(db, Expense, expense_id, "Expense")
    return ApiResponse(data=ExpenseResponse.model_validate(expense))


@router.put("/{expense_id}", response_model=ApiResponse[ExpenseResponse])
async def update_expense(
    expense_id: UUID,
    update: ExpenseUpdate,
    db: AsyncSession = Depends(get_db),
):
    expense = await get_or_404(db, Expense, expense_id, "Expense")
    changes = update.model_dump(exclude_unset=True)

    category = changes.get("category")
    if category is not None and category not in categories_for_scope(expense.scope):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid category '{category}' for {expense.scope.value} expenses",
        )
    if changes.get("supplier_id"):
        await get_or_404(db, Supplier, changes["supplier_id"], "Supplier")

    for field, value in changes.items():
        setattr(expense, field, value)

    await db.commit()
    await db.refresh(expense)
    return ApiResponse(data=ExpenseResponse.model_validate(expense))


@router.delete("/{expense_id}", response_model=ApiResponse[MessageResponse])
async def delete_expense(expense_id: UUID, db: AsyncSession = Depends(get_db)):
    expense = await get_or_404(db, Expense, expense_id, "Expense")
    await db.delete(expense)
    await db.commit()
    logger.info(f"Deleted expense {expense_id}")
    return ApiResponse(data=MessageResponse(message="Expense deleted"))


@router.post("/{expense_id}/mark-paid", response_model=ApiResponse[ExpenseResponse])
async def mark_expense_paid(
    expense_id: UUID,
    paid_at: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    """Mark an expense as paid, today unless a date is given."""
    expense = await get_or_404(db, Expense, expense_id, "Expense")
    if expense.status == ExpenseStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Cannot pay a cancelled expense")

    expense.status = ExpenseStatus.PAID
    expense.paid_at = paid_at or date.today()
    await db.commit()
    await db.refresh(expense)
    return ApiResponse(data=ExpenseResponse.model_validate(expense))
