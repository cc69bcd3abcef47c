"""
Pagination schemas shared by list and query operations.

Cursors are opaque strings produced and consumed by the stores.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from governance.config import settings

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Cursor pagination request."""
    cursor: Optional[str] = Field(None, description="Opaque cursor from a previous page")
    limit: int = Field(default_factory=lambda: settings.default_page_limit)

    def normalized(self) -> "PaginationParams":
        """Copy with limit clamped to [1, max_page_limit]."""
        limit = min(max(self.limit, 1), settings.max_page_limit)
        return PaginationParams(cursor=self.cursor, limit=limit)


def normalize_pagination(params: Optional[PaginationParams]) -> PaginationParams:
    """Apply defaults and clamping to optional pagination input."""
    return (params or PaginationParams()).normalized()


class Page(BaseModel, Generic[T]):
    """One page of results."""
    items: List[T]
    next_cursor: Optional[str] = None
    has_more: bool = False
