"""Pagination helpers shared by list endpoints."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import Select, func
from sqlalchemy.ext.asyncio import AsyncSession


class PaginationParams(BaseModel):
    """Pagination parameters for API endpoints."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Number of items per page",
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.page_size) if total else 0


async def paginate_query(
    session: AsyncSession,
    stmt: Select[Any],
    pagination: PaginationParams,
) -> tuple[list[Any], int]:
    """Run ``stmt`` for one page and return the rows with the total count."""

    count_stmt = stmt.order_by(None).with_only_columns(
        func.count(), maintain_column_froms=True
    )
    total = (await session.execute(count_stmt)).scalar() or 0

    result = await session.execute(
        stmt.offset(pagination.offset).limit(pagination.limit)
    )
    return list(result.scalars().all()), total
