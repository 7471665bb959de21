from __future__ import annotations

from pydantic import BaseModel, field_validator

from ..core.constants import normalize_choice


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int


class DeleteResult(BaseModel):
    status: str = "deleted"
    id: str


def strip_text(value: object) -> object:
    """Trim strings; blank strings become ``None`` so required checks catch them."""

    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def lower_choice(value: object) -> object:
    if isinstance(value, str):
        return normalize_choice(value)
    return value


class TrimmedModel(BaseModel):
    """Base for request bodies: every incoming string is trimmed first."""

    @field_validator("*", mode="before")
    @classmethod
    def _trim_strings(cls, value: object) -> object:
        return strip_text(value)


__all__ = ["DeleteResult", "PageMeta", "TrimmedModel", "lower_choice", "strip_text"]
