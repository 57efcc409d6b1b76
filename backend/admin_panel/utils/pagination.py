"""Page/limit handling shared by the list endpoints."""

from __future__ import annotations

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def clamp(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalise user supplied paging values to `(page, limit)`."""
    page = max(1, int(page or 1))
    limit = int(limit or DEFAULT_LIMIT)
    return page, max(1, min(limit, MAX_LIMIT))


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    """Pagination block in the shape the panel tables read."""
    total_pages = max(1, (total + limit - 1) // limit)
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "limit": limit,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }
