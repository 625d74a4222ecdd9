"""Helpers shared by the API routers."""
from typing import Any, List, Optional, Tuple

from fastapi import Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.config import settings
from app.schemas.common import ApiResponse

DEFAULT_USER = "api"


def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Acting user, taken from the X-User-Id header."""
    return x_user_id or DEFAULT_USER


def clamp_page_size(page_size: int) -> int:
    return max(1, min(page_size, settings.MAX_PAGE_SIZE))


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated query parameter, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


async def paginate(
    db: AsyncSession, query: Select, page: int, page_size: int
) -> Tuple[List[Any], int]:
    """Run a query for one page. Returns (items, total)."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    return list(result.scalars().unique().all()), total


def raise_for_error(e: Exception):
    """Translate a service exception into an HTTPException."""
    if isinstance(e, LookupError):
        raise HTTPException(status_code=404, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def error_response(status_code: int, error: str, details: Any = None) -> JSONResponse:
    """Error envelope that carries details alongside the message."""
    body = ApiResponse(success=False, error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def get_or_404(db: AsyncSession, model, record_id: Any, name: str):
    record = await db.get(model, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{name} not found")
    return record
