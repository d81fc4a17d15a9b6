"""Shared database helpers for user-scoped reads."""

from __future__ import annotations

import uuid
from typing import Any, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from profile_canon.exceptions import NotFoundError

T = TypeVar("T")


async def fetch_user_rows(
    db: AsyncSession,
    model: Type[T],
    user_id: uuid.UUID,
    *order_by: Any,
) -> Sequence[T]:
    """Return every row of *model* owned by user_id, optionally ordered."""
    stmt = select(model).where(model.user_id == user_id)  # type: ignore[attr-defined]
    if order_by:
        stmt = stmt.order_by(*order_by)
    result = await db.execute(stmt)
    return result.scalars().all()


async def get_or_404(
    db: AsyncSession,
    model: Type[T],
    obj_id: uuid.UUID,
    user_id: uuid.UUID,
    detail: str = "Not found",
) -> T:
    """Fetch a single row scoped to user_id, or raise NotFoundError (HTTP 404)."""
    result = await db.execute(
        select(model).where(
            model.id == obj_id,  # type: ignore[attr-defined]
            model.user_id == user_id,  # type: ignore[attr-defined]
        )
    )
    obj = result.scalar_one_or_none()
    if obj is None:
        raise NotFoundError(detail)
    return obj
