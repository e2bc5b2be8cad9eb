from fastapi import Query

from app.config import settings


class PaginationParams:
    """
    FastAPI dependency that parses and validates pagination / sorting
    query parameters for list endpoints.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Items per page, clamped to ``settings.MAX_PAGE_SIZE``.
    sort_by:
        One of ``created_at``, ``upvotes`` or ``title``.
    sort_order:
        ``"asc"`` or ``"desc"``.
    offset:
        SQL OFFSET derived from *page* and *page_size*.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_by: str = Query(
            "created_at",
            pattern="^(created_at|upvotes|title)$",
            description="Column to sort results by.",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
