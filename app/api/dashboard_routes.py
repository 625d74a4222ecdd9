"""API routes for dashboard summaries."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.common import raise_for_error
from app.database import get_db
from app.schemas.common import ApiResponse
from app.schemas.financials import PortfolioFinancialsResponse
from app.services.financials import get_portfolio_financials

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/financials", response_model=ApiResponse[PortfolioFinancialsResponse])
async def get_dashboard_financials(
    months: int = Query(12, ge=1, le=120),
    house_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
):
    """Monthly income against expenses, with a per-house breakdown."""
    try:
        financials = await get_portfolio_financials(db, months, house_id)
    except LookupError as e:
        raise_for_error(e)
    return ApiResponse(data=financials)
