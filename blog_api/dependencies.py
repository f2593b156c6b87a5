from fastapi import Query

from blog_api.config import settings
from blog_api.schemas import INT32_MAX


class ListingParams:
    """
    Reusable FastAPI dependency that parses the post listing query string.

    Usage in a router::

        @router.get("/posts")
        async def list_posts(params: ListingParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Posts per page, clamped to ``settings.MAX_PAGE_SIZE``.
    category:
        Exact (case-sensitive) category name to filter on.
    search:
        Case-insensitive substring matched against title and content.
    sort_order:
        ``"asc"`` sorts oldest first; anything else is newest first.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, le=INT32_MAX, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of posts per page.",
        ),
        category: str | None = Query(None, description="Category name to filter by."),
        search: str | None = Query(None, description="Text to look for in title or content."),
        sort_order: str = Query(
            "desc",
            alias="sortOrder",
            description="'asc' for oldest first; newest first otherwise.",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.category = category or None
        self.search = search.strip() if search and search.strip() else None
        self.sort_order = "asc" if sort_order.lower() == "asc" else "desc"
