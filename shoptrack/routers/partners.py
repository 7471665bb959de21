from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.errors import http_error
from ..crud.partners import create_partner, delete_partner, get_partner, list_partners, update_partner
from ..crud.transactions import list_transactions
from ..db.session import get_db
from ..deps import PageParams, page_params
from ..schemas.common import DeleteResult
from ..schemas.partner import PartnerIn, PartnerOut, PartnerPage
from ..schemas.transaction import TransactionPage

router = APIRouter(prefix="/api/v1/partners", tags=["partners"])


@router.get("", response_model=PartnerPage)
def api_list_partners(
    params: PageParams = Depends(page_params),
    partner_type: Optional[Literal["individual", "shop"]] = Query(default=None, alias="type"),
    include_deleted: bool = False,
    db: Session = Depends(get_db),
):
    rows, total = list_partners(
        db,
        q=params.q,
        partner_type=partner_type,
        include_deleted=include_deleted,
        page=params.page,
        limit=params.limit,
    )
    return {"items": rows, **params.meta(total)}


@router.post("", response_model=PartnerOut, status_code=201)
def api_create_partner(payload: PartnerIn, db: Session = Depends(get_db)):
    try:
        return create_partner(db, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _update(db: Session, partner_id: str, payload: PartnerIn):
    partner = get_partner(db, partner_id)
    if not partner:
        raise HTTPException(404, "Not found")
    try:
        return update_partner(db, partner, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc) from exc


def _delete(db: Session, partner_id: str):
    partner = get_partner(db, partner_id)
    if not partner:
        raise HTTPException(404, "Not found")
    delete_partner(db, partner)
    return {"status": "deleted", "id": partner_id}


@router.put("", response_model=PartnerOut)
def api_update_partner_by_query(
    payload: PartnerIn,
    partner_id: str = Query(alias="id", min_length=1),
    db: Session = Depends(get_db),
):
    return _update(db, partner_id, payload)


@router.delete("", response_model=DeleteResult)
def api_delete_partner_by_query(partner_id: str = Query(alias="id", min_length=1), db: Session = Depends(get_db)):
    return _delete(db, partner_id)


@router.get("/{partner_id}", response_model=PartnerOut)
def api_get_partner(partner_id: str, include_deleted: bool = False, db: Session = Depends(get_db)):
    partner = get_partner(db, partner_id, include_deleted=include_deleted)
    if not partner:
        raise HTTPException(404, "Not found")
    return partner


@router.put("/{partner_id}", response_model=PartnerOut)
def api_update_partner(partner_id: str, payload: PartnerIn, db: Session = Depends(get_db)):
    return _update(db, partner_id, payload)


@router.delete("/{partner_id}", response_model=DeleteResult)
def api_delete_partner(partner_id: str, db: Session = Depends(get_db)):
    return _delete(db, partner_id)


@router.get("/{partner_id}/transactions", response_model=TransactionPage)
def api_partner_transactions(
    partner_id: str,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    # History stays readable after the partner is soft deleted.
    partner = get_partner(db, partner_id, include_deleted=True)
    if not partner:
        raise HTTPException(404, "Not found")
    rows, total = list_transactions(
        db,
        q=params.q,
        partner_id=partner.id,
        page=params.page,
        limit=params.limit,
    )
    return {"items": rows, **params.meta(total)}
