from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.errors import http_error
from ..crud.expenses import create_expense, delete_expense, get_expense, list_expenses, update_expense
from ..db.session import get_db
from ..deps import PageParams, page_params
from ..schemas.common import DeleteResult
from ..schemas.expense import ExpenseIn, ExpenseOut, ExpensePage

router = APIRouter(prefix="/api/v1/expenses", tags=["expenses"])

ExpenseCategoryFilter = Optional[Literal["rent", "salaries", "utilities", "stock", "other"]]


@router.get("", response_model=ExpensePage)
def api_list_expenses(
    params: PageParams = Depends(page_params),
    category: ExpenseCategoryFilter = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
):
    rows, total, total_amount = list_expenses(
        db,
        q=params.q,
        category=category,
        date_from=date_from,
        date_to=date_to,
        include_deleted=include_deleted,
        page=params.page,
        limit=params.limit,
    )
    return {"items": rows, "total_amount": total_amount, **params.meta(total)}


@router.post("", response_model=ExpenseOut, status_code=201)
def api_create_expense(payload: ExpenseIn, db: Session = Depends(get_db)):
    try:
        return create_expense(db, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _update(db: Session, expense_id: str, payload: ExpenseIn):
    expense = get_expense(db, expense_id)
    if not expense:
        raise HTTPException(404, "Not found")
    try:
        return update_expense(db, expense, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _delete(db: Session, expense_id: str):
    expense = get_expense(db, expense_id)
    if not expense:
        raise HTTPException(404, "Not found")
    delete_expense(db, expense)
    return {"status": "deleted", "id": expense_id}


@router.put("", response_model=ExpenseOut)
def api_update_expense_by_query(
    payload: ExpenseIn,
    expense_id: str = Query(alias="id", min_length=1),
    db: Session = Depends(get_db),
):
    return _update(db, expense_id, payload)


@router.delete("", response_model=DeleteResult)
def api_delete_expense_by_query(expense_id: str = Query(alias="id", min_length=1), db: Session = Depends(get_db)):
    return _delete(db, expense_id)


@router.get("/{expense_id}", response_model=ExpenseOut)
def api_get_expense(expense_id: str, include_deleted: bool = False, db: Session = Depends(get_db)):
    expense = get_expense(db, expense_id, include_deleted=include_deleted)
    if not expense:
        raise HTTPException(404, "Not found")
    return expense


@router.put("/{expense_id}", response_model=ExpenseOut)
def api_update_expense(expense_id: str, payload: ExpenseIn, db: Session = Depends(get_db)):
    return _update(db, expense_id, payload)


@router.delete("/{expense_id}", response_model=DeleteResult)
def api_delete_expense(expense_id: str, db: Session = Depends(get_db)):
    return _delete(db, expense_id)
