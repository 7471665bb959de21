"""Shared helpers for the ``q``/``page``/``limit`` list endpoints."""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

LIKE_ESCAPE = "\\"


def like_pattern(q: str) -> str:
    """Wrap ``q`` for a substring LIKE, escaping the wildcard characters."""

    escaped = q.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", r"\%").replace("_", r"\_")
    return f"%{escaped}%"


def substring_filter(q: str | None, *columns: Any):
    """Case-insensitive "contains" across ``columns`` (``None`` when ``q`` is blank)."""

    term = (q or "").strip()
    if not term:
        return None
    pattern = like_pattern(term)
    return or_(*(column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns))


def paginate(db: Session, stmt: Select, *, page: int, limit: int) -> tuple[Sequence[Any], int]:
    """Run ``stmt`` for one page and return ``(rows, total_matching_rows)``."""

    page = max(int(page), 1)
    limit = max(int(limit), 1)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = db.execute(count_stmt).scalar_one()
    rows = db.execute(stmt.limit(limit).offset((page - 1) * limit)).unique().scalars().all()
    return rows, int(total)


__all__ = ["like_pattern", "paginate", "substring_filter"]
