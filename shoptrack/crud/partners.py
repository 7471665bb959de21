"""Partner CRUD. Deletes are soft so ledger rows keep their references."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.constants import (
    PARTNER_TYPE_INDIVIDUAL,
    PARTNER_TYPE_SHOP,
    UNKNOWN_PHONE,
    WALK_IN_PARTNER_ID,
)
from ..core.dates import utcnow_iso
from ..core.errors import ConflictError
from ..models.partner import Partner
from .pagination import paginate, substring_filter

logger = logging.getLogger(__name__)


def list_partners(
    db: Session,
    *,
    q: str | None = None,
    partner_type: str | None = None,
    include_deleted: bool = False,
    page: int = 1,
    limit: int = 10,
):
    stmt = select(Partner)
    if not include_deleted:
        stmt = stmt.where(Partner.deleted_at.is_(None))
    if partner_type:
        stmt = stmt.where(Partner.type == partner_type)
    condition = substring_filter(q, Partner.name, Partner.phone, Partner.shop_name)
    if condition is not None:
        stmt = stmt.where(condition)
    stmt = stmt.order_by(func.lower(Partner.name), Partner.id)
    return paginate(db, stmt, page=page, limit=limit)


def get_partner(db: Session, partner_id: str, *, include_deleted: bool = False) -> Partner | None:
    partner = db.get(Partner, partner_id)
    if partner is None or (partner.deleted_at and not include_deleted):
        return None
    return partner


def find_partner(db: Session, *, name: str | None = None, phone: str | None = None) -> Partner | None:
    """Look up an active partner by (case-insensitive) name, falling back to phone.

    The placeholder phone never matches so anonymous partners stay separate.
    """

    name = (name or "").strip()
    phone = (phone or "").strip()
    if name:
        stmt = select(Partner).where(
            Partner.deleted_at.is_(None),
            func.lower(Partner.name) == name.lower(),
        )
        found = db.execute(stmt).scalars().first()
        if found:
            return found
    if phone and phone != UNKNOWN_PHONE:
        stmt = select(Partner).where(Partner.deleted_at.is_(None), Partner.phone == phone)
        return db.execute(stmt).scalars().first()
    return None


def _ensure_unique_name(db: Session, name: str, *, exclude_id: str | None = None) -> None:
    stmt = select(Partner.id).where(
        Partner.deleted_at.is_(None),
        func.lower(Partner.name) == name.lower(),
    )
    if exclude_id:
        stmt = stmt.where(Partner.id != exclude_id)
    if db.execute(stmt).scalars().first():
        raise ConflictError("A partner with this name already exists.", {"name": name})


def _clean(payload: dict) -> dict:
    partner_type = (payload.get("type") or PARTNER_TYPE_INDIVIDUAL).strip().lower()
    name = (payload.get("name") or "").strip()
    phone = (payload.get("phone") or "").strip()
    shop_name = (payload.get("shop_name") or "").strip() or None
    if not name:
        raise ValueError("name is required")
    if not phone:
        raise ValueError("phone is required")
    if partner_type == PARTNER_TYPE_SHOP:
        if not shop_name:
            raise ValueError("shop_name is required for shop partners")
    else:
        shop_name = None
    return {"type": partner_type, "name": name, "phone": phone, "shop_name": shop_name}


def _new_partner(db: Session, data: dict) -> Partner:
    now = utcnow_iso()
    partner = Partner(**data, created_at=now, updated_at=now)
    db.add(partner)
    db.flush()
    return partner


def create_partner(db: Session, payload: dict) -> Partner:
    data = _clean(payload)
    _ensure_unique_name(db, data["name"])
    partner = _new_partner(db, data)
    db.commit()
    db.refresh(partner)
    logger.info("partner.created", extra={"extra_data": {"partner_id": partner.id, "type": partner.type}})
    return partner


def update_partner(db: Session, partner: Partner, payload: dict) -> Partner:
    """Replace every mutable field of an active partner."""

    data = _clean(payload)
    _ensure_unique_name(db, data["name"], exclude_id=partner.id)
    for key, value in data.items():
        setattr(partner, key, value)
    partner.updated_at = utcnow_iso()
    db.commit()
    db.refresh(partner)
    logger.info("partner.updated", extra={"extra_data": {"partner_id": partner.id}})
    return partner


def delete_partner(db: Session, partner: Partner) -> Partner:
    partner.deleted_at = utcnow_iso()
    partner.updated_at = partner.deleted_at
    db.commit()
    logger.info("partner.deleted", extra={"extra_data": {"partner_id": partner.id}})
    return partner


def resolve_partner_id(db: Session, partner_id: str | None) -> Partner | None:
    """Turn a client-supplied partner id into a row.

    Blank ids and the walk-in marker mean "no partner". Unknown or deleted ids
    are rejected.
    """

    cleaned = (partner_id or "").strip()
    if not cleaned or cleaned == WALK_IN_PARTNER_ID:
        return None
    partner = get_partner(db, cleaned)
    if partner is None:
        raise ValueError(f"partner {cleaned} does not exist")
    return partner


def ensure_partner(db: Session, *, name: str, phone: str | None = None) -> Partner:
    """Find a partner by name/phone or stage a new individual one.

    The new row is flushed, not committed, so it joins the caller's unit of
    work and disappears if the surrounding operation is rolled back.
    """

    existing = find_partner(db, name=name, phone=phone)
    if existing:
        return existing
    data = _clean(
        {
            "type": PARTNER_TYPE_INDIVIDUAL,
            "name": name,
            "phone": (phone or "").strip() or UNKNOWN_PHONE,
        }
    )
    partner = _new_partner(db, data)
    logger.info("partner.auto_created", extra={"extra_data": {"partner_id": partner.id}})
    return partner


__all__ = [
    "create_partner",
    "delete_partner",
    "ensure_partner",
    "find_partner",
    "get_partner",
    "list_partners",
    "resolve_partner_id",
    "update_partner",
]
