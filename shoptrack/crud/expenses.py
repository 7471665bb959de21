from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..core.constants import EXPENSE_CATEGORIES
from ..core.dates import day_end_iso, day_start_iso, to_iso, utcnow_iso
from ..core.money import quantize_currency
from ..models.expense import Expense
from .pagination import paginate, substring_filter

logger = logging.getLogger(__name__)


def _filtered(
    *,
    q: str | None,
    category: str | None,
    date_from: date | None,
    date_to: date | None,
    include_deleted: bool,
):
    stmt = select(Expense)
    if not include_deleted:
        stmt = stmt.where(Expense.deleted_at.is_(None))
    if category:
        stmt = stmt.where(Expense.category == category.strip().lower())
    if date_from:
        stmt = stmt.where(Expense.date >= day_start_iso(date_from))
    if date_to:
        stmt = stmt.where(Expense.date < day_end_iso(date_to))
    condition = substring_filter(q, Expense.description, Expense.category)
    if condition is not None:
        stmt = stmt.where(condition)
    return stmt


def list_expenses(
    db: Session,
    *,
    q: str | None = None,
    category: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    include_deleted: bool = False,
    page: int = 1,
    limit: int = 10,
):
    """Return ``(rows, total_rows, total_amount)`` for the matching expenses."""

    stmt = _filtered(
        q=q,
        category=category,
        date_from=date_from,
        date_to=date_to,
        include_deleted=include_deleted,
    )
    matching = stmt.subquery()
    amount_stmt = select(func.coalesce(func.sum(matching.c.amount), 0))
    total_amount = quantize_currency(db.execute(amount_stmt).scalar_one())
    stmt = stmt.order_by(desc(Expense.date), desc(Expense.created_at), Expense.id)
    rows, total = paginate(db, stmt, page=page, limit=limit)
    return rows, total, total_amount


def get_expense(db: Session, expense_id: str, *, include_deleted: bool = False) -> Expense | None:
    expense = db.get(Expense, expense_id)
    if expense is None or (expense.deleted_at and not include_deleted):
        return None
    return expense


def _clean(payload: dict) -> dict:
    category = (payload.get("category") or "").strip().lower()
    if category not in EXPENSE_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(EXPENSE_CATEGORIES)}")
    description = (payload.get("description") or "").strip()
    if not description:
        raise ValueError("description is required")
    amount = quantize_currency(payload.get("amount"))
    if amount <= Decimal("0"):
        raise ValueError("amount must be greater than zero")
    when = payload.get("date")
    if when is None:
        raise ValueError("date is required")
    if isinstance(when, datetime):
        when = to_iso(when)
    return {"category": category, "description": description, "amount": amount, "date": when}


def create_expense(db: Session, payload: dict) -> Expense:
    data = _clean(payload)
    now = utcnow_iso()
    expense = Expense(**data, created_at=now, updated_at=now)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info(
        "expense.created",
        extra={"extra_data": {"expense_id": expense.id, "category": expense.category}},
    )
    return expense


def update_expense(db: Session, expense: Expense, payload: dict) -> Expense:
    data = _clean(payload)
    for key, value in data.items():
        setattr(expense, key, value)
    expense.updated_at = utcnow_iso()
    db.commit()
    db.refresh(expense)
    logger.info("expense.updated", extra={"extra_data": {"expense_id": expense.id}})
    return expense


def delete_expense(db: Session, expense: Expense) -> Expense:
    expense.deleted_at = utcnow_iso()
    expense.updated_at = expense.deleted_at
    db.commit()
    logger.info("expense.deleted", extra={"extra_data": {"expense_id": expense.id}})
    return expense


__all__ = [
    "create_expense",
    "delete_expense",
    "get_expense",
    "list_expenses",
    "update_expense",
]
