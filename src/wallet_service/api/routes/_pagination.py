from __future__ import annotations

from fastapi import Query

from wallet_service.db.pagination import PaginationParams


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(
        default=20, ge=1, le=100, description="Number of items per page"
    ),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)
