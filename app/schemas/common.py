"""Shared response envelopes, pagination schemas and update validators."""
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, field_validator

T = TypeVar("T")


def reject_null(*fields: str):
    """
    Field validator for partial updates.

    Update schemas make every field optional so it can be left out, but an
    explicit null on a column that is NOT NULL must fail validation.
    """

    def check_not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    return field_validator(*fields)(check_not_null)


class ApiResponse(BaseModel, Generic[T]):
    """Standard `{success, data|error}` response envelope."""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    details: Optional[Any] = None


class Page(BaseModel, Generic[T]):
    """A page of list results."""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool

    @classmethod
    def build(cls, items: List[Any], total: int, page: int, page_size: int) -> "Page":
        total_pages = (total + page_size - 1) // page_size if page_size else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_more=page * page_size < total,
        )


class MessageResponse(BaseModel):
    """Simple message payload."""
    message: str
