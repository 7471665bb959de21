from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query

from ..core.config import settings


@dataclass(frozen=True)
class PageParams:
    q: str | None
    page: int
    limit: int

    def meta(self, total: int) -> dict[str, int]:
        return {"total": total, "page": self.page, "limit": self.limit}


def page_params(
    q: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageParams:
    """``q``/``page``/``limit`` as accepted by every collection endpoint."""

    return PageParams(q=q, page=page, limit=limit or settings.DEFAULT_PAGE_SIZE)
