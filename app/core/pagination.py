"""Pagination helpers for the upload history endpoints."""


from fastapi import Query
from pydantic import BaseModel

# Upload batch columns a caller may sort history by
SORTABLE_BATCH_FIELDS = ("submitted_at", "completed_at", "total_rows", "error_count", "status", "kind")


class PaginationParams:
    """FastAPI dependency for `?page=1&limit=20&sort=submitted_at&order=desc`."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(default=20, ge=1, le=200, description="Batches per page"),
        sort: str = Query(
            default="submitted_at",
            pattern=f"^({'|'.join(SORTABLE_BATCH_FIELDS)})$",
            description="Sort field",
        ),
        order: str = Query(default="desc", pattern="^(asc|desc)$", description="Sort order"),
    ):
        self.page = page
        self.limit = limit
        self.sort = sort
        self.order = order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
