from datetime import datetime, timezone
from math import ceil
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from ..core.config import settings

T = TypeVar("T")


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an offset-aware datetime to naive UTC, matching the DateTime columns."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapping every response body."""
    success: bool = True
    message: str
    data: Optional[T] = None
    pagination: Optional[Pagination] = None


class PageParams(BaseModel):
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_SIZE
    sort_by: Optional[str] = None
    order: str = "asc"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def clamp(cls, page: Optional[int], limit: Optional[int], sort_by: Optional[str] = None, order: Optional[str] = None) -> "PageParams":
        """Normalize raw query values: page >= 1, 1 <= limit <= MAX_PAGE_SIZE."""
        page = max(1, page or 1)
        limit = min(settings.MAX_PAGE_SIZE, max(1, limit or settings.DEFAULT_PAGE_SIZE))
        return cls(page=page, limit=limit, sort_by=sort_by, order="desc" if order == "desc" else "asc")

    def pagination(self, total: int) -> Pagination:
        return Pagination(total=total, page=self.page, limit=self.limit, pages=ceil(total / self.limit))
