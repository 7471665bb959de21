from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.errors import http_error
from ..crud.products import (
    archive_product,
    create_product,
    delete_product,
    get_product,
    list_lent_products,
    list_products,
    update_product,
)
from ..db.session import get_db
from ..deps import PageParams, page_params
from ..schemas.product import (
    LendRequest,
    LentItem,
    ProductDeleteResult,
    ProductIn,
    ProductOut,
    ProductPage,
    ReceiveRequest,
    ReturnRequest,
    SaleRequest,
)
from ..schemas.transaction import TransactionOut
from ..services.stock import lend_product, receive_stock, return_product, sell_product

router = APIRouter(prefix="/api/v1/products", tags=["products"])


def _active_or_404(db: Session, product_id: str):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Not found")
    return product


@router.get("", response_model=ProductPage)
def api_list_products(
    params: PageParams = Depends(page_params),
    product_type: Optional[Literal["individual", "sku"]] = Query(default=None, alias="type"),
    category: Optional[str] = None,
    in_stock: Optional[bool] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
):
    rows, total = list_products(
        db,
        q=params.q,
        product_type=product_type,
        category=category,
        in_stock=in_stock,
        include_deleted=include_deleted,
        page=params.page,
        limit=params.limit,
    )
    return {"items": rows, **params.meta(total)}


@router.post("", response_model=ProductOut, status_code=201)
def api_create_product(payload: ProductIn, db: Session = Depends(get_db)):
    try:
        return create_product(db, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _update(db: Session, product_id: str, payload: ProductIn):
    product = _active_or_404(db, product_id)
    try:
        return update_product(db, product, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _delete(db: Session, product_id: str):
    # Archived products can still be purged.
    product = get_product(db, product_id, include_deleted=True)
    if not product:
        raise HTTPException(404, "Not found")
    removed = delete_product(db, product)
    return {"status": "deleted", "id": product_id, "transactions_removed": removed}


@router.put("", response_model=ProductOut)
def api_update_product_by_query(
    payload: ProductIn,
    product_id: str = Query(alias="id", min_length=1),
    db: Session = Depends(get_db),
):
    return _update(db, product_id, payload)


@router.delete("", response_model=ProductDeleteResult)
def api_delete_product_by_query(product_id: str = Query(alias="id", min_length=1), db: Session = Depends(get_db)):
    return _delete(db, product_id)


@router.get("/lent", response_model=list[LentItem])
def api_lent_products(db: Session = Depends(get_db)):
    return list_lent_products(db)


@router.get("/{product_id}", response_model=ProductOut)
def api_get_product(product_id: str, include_deleted: bool = False, db: Session = Depends(get_db)):
    product = get_product(db, product_id, include_deleted=include_deleted)
    if not product:
        raise HTTPException(404, "Not found")
    return product


@router.put("/{product_id}", response_model=ProductOut)
def api_update_product(product_id: str, payload: ProductIn, db: Session = Depends(get_db)):
    return _update(db, product_id, payload)


@router.delete("/{product_id}", response_model=ProductDeleteResult)
def api_delete_product(product_id: str, db: Session = Depends(get_db)):
    return _delete(db, product_id)


@router.post("/{product_id}/archive", response_model=ProductOut)
def api_archive_product(product_id: str, db: Session = Depends(get_db)):
    product = _active_or_404(db, product_id)
    return archive_product(db, product)


@router.post("/{product_id}/sell", response_model=TransactionOut, status_code=201)
def api_sell_product(product_id: str, payload: SaleRequest, db: Session = Depends(get_db)):
    product = _active_or_404(db, product_id)
    try:
        return sell_product(db, product, **payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


@router.post("/{product_id}/receive", response_model=TransactionOut, status_code=201)
def api_receive_stock(product_id: str, payload: ReceiveRequest, db: Session = Depends(get_db)):
    product = _active_or_404(db, product_id)
    try:
        return receive_stock(db, product, **payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


@router.post("/{product_id}/lend", response_model=TransactionOut, status_code=201)
def api_lend_product(product_id: str, payload: LendRequest, db: Session = Depends(get_db)):
    product = _active_or_404(db, product_id)
    try:
        return lend_product(db, product, **payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


@router.post("/{product_id}/return", response_model=TransactionOut, status_code=201)
def api_return_product(
    product_id: str,
    payload: Optional[ReturnRequest] = None,
    db: Session = Depends(get_db),
):
    product = _active_or_404(db, product_id)
    body = payload.model_dump() if payload else {}
    try:
        return return_product(db, product, **body)
    except ValueError as exc:
        raise http_error(exc) from exc
