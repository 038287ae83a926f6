from typing import Annotated

from fastapi import Path, Query, Request

from cms.errors import ValidationError
from cms.query import MAX_ROW_ID, PageRequest

# Integer path ids; larger values cannot name a row.
RowId = Annotated[int, Path(le=MAX_ROW_ID)]


def id_filter(value: str | None, name: str) -> int | None:
    """Parse an optional numeric filter from the query string; blank means unset."""
    if value is None or value.strip() == "":
        return None
    try:
        number = int(value)
    except ValueError as exc:
        raise ValidationError(f"{name}: must be an integer") from exc
    if abs(number) > MAX_ROW_ID:
        raise ValidationError(f"{name}: out of range")
    return number


class PaginationParams:
    """
    Reusable FastAPI dependency that parses the ``page`` / ``limit`` query
    parameters of list endpoints.

    Usage in a router::

        @router.get("")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page_request:
        Normalised ``PageRequest``.  Values below 1 fall back to page 1 and
        the endpoint's default limit; ``limit`` is capped at
        ``settings.MAX_PAGE_SIZE`` so a settings change is sufficient.
    """

    # Settings attribute holding this endpoint family's default page size.
    default_limit_setting = "DEFAULT_PAGE_SIZE"

    def __init__(
        self,
        request: Request,
        page: int = Query(
            1,
            description="Page number (1-based).",
        ),
        limit: int | None = Query(
            None,
            description="Number of items returned per page.",
        ),
    ) -> None:
        settings = request.app.state.settings
        self.page_request = PageRequest.normalize(
            page,
            limit,
            default_limit=getattr(settings, self.default_limit_setting),
            max_limit=settings.MAX_PAGE_SIZE,
        )

    @property
    def page(self) -> int:
        return self.page_request.page

    @property
    def limit(self) -> int:
        return self.page_request.limit


class ActivityPaginationParams(PaginationParams):
    """Pagination for the activity log, which pages 20 entries by default."""

    default_limit_setting = "ACTIVITY_PAGE_SIZE"
