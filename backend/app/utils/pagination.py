"""
Pagination Utility Module

Page/limit helpers shared by the admin list endpoints, and the
limit+1 "has more" slicing used by the leaderboard summaries.
"""
from typing import List, Optional, Any, Sequence, Tuple, TypeVar
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

T = TypeVar('T')

MAX_PAGE_SIZE = 100


class PaginationMeta(BaseModel):
    """Pagination block returned alongside list payloads"""
    page: int
    limit: int
    total: int
    total_pages: int


def clamp_page(page: int, limit: int) -> Tuple[int, int]:
    """Force page >= 1 and 1 <= limit <= MAX_PAGE_SIZE"""
    return max(1, page), max(1, min(MAX_PAGE_SIZE, limit))


def total_pages_for(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if total > 0 else 1


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    limit: int = 20,
    count_query: Optional[Select] = None
) -> Tuple[List[Any], PaginationMeta]:
    """
    Apply pagination to a SQLAlchemy select.

    Args:
        db: Database session
        query: Base query (already filtered and ordered)
        page: Page number (1-indexed)
        limit: Items per page, capped at MAX_PAGE_SIZE
        count_query: Optional custom count query

    Returns:
        (items, PaginationMeta)
    """
    page, limit = clamp_page(page, limit)

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    items = list(result.scalars().all())

    return items, PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages_for(total, limit),
    )


def split_has_more(rows: Sequence[T], limit: int) -> Tuple[List[T], bool]:
    """Rows were fetched with limit+1; drop the probe row and report whether it existed"""
    rows = list(rows)
    has_more = len(rows) > limit
    if has_more:
        rows = rows[:limit]
    return rows, has_more
