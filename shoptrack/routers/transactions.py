from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.errors import http_error
from ..crud.products import get_product
from ..crud.transactions import (
    create_transaction,
    delete_transaction,
    get_transaction,
    list_transactions,
    update_transaction,
)
from ..db.session import get_db
from ..deps import PageParams, page_params
from ..schemas.common import DeleteResult
from ..schemas.transaction import TransactionCreate, TransactionOut, TransactionPage, TransactionUpdate

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


@router.get("", response_model=TransactionPage)
def api_list_transactions(
    params: PageParams = Depends(page_params),
    txn_type: Optional[Literal["purchase", "sale", "lend-out", "return"]] = Query(default=None, alias="type"),
    product_id: Optional[str] = None,
    partner_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    rows, total = list_transactions(
        db,
        q=params.q,
        txn_type=txn_type,
        product_id=product_id,
        partner_id=partner_id,
        date_from=date_from,
        date_to=date_to,
        page=params.page,
        limit=params.limit,
    )
    return {"items": rows, **params.meta(total)}


@router.post("", response_model=TransactionOut, status_code=201)
def api_create_transaction(payload: TransactionCreate, db: Session = Depends(get_db)):
    if not get_product(db, payload.product_id):
        raise HTTPException(404, "Product not found")
    try:
        return create_transaction(db, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _update(db: Session, transaction_id: str, payload: TransactionUpdate):
    txn = get_transaction(db, transaction_id)
    if not txn:
        raise HTTPException(404, "Not found")
    try:
        return update_transaction(db, txn, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _delete(db: Session, transaction_id: str):
    txn = get_transaction(db, transaction_id)
    if not txn:
        raise HTTPException(404, "Not found")
    try:
        delete_transaction(db, txn)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": transaction_id}


@router.put("", response_model=TransactionOut)
def api_update_transaction_by_query(
    payload: TransactionUpdate,
    transaction_id: str = Query(alias="id", min_length=1),
    db: Session = Depends(get_db),
):
    return _update(db, transaction_id, payload)


@router.delete("", response_model=DeleteResult)
def api_delete_transaction_by_query(
    transaction_id: str = Query(alias="id", min_length=1),
    db: Session = Depends(get_db),
):
    return _delete(db, transaction_id)


@router.get("/{transaction_id}", response_model=TransactionOut)
def api_get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    txn = get_transaction(db, transaction_id)
    if not txn:
        raise HTTPException(404, "Not found")
    return txn


@router.put("/{transaction_id}", response_model=TransactionOut)
def api_update_transaction(transaction_id: str, payload: TransactionUpdate, db: Session = Depends(get_db)):
    return _update(db, transaction_id, payload)


@router.delete("/{transaction_id}", response_model=DeleteResult)
def api_delete_transaction(transaction_id: str, db: Session = Depends(get_db)):
    return _delete(db, transaction_id)
