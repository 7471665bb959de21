"""Ledger CRUD.

Every write keeps ``products.stock`` and the ledger in step inside a single
database transaction: the row and the stock change are committed together or
not at all. Stock effects by type:

* ``purchase``  adds ``quantity`` to stock
* ``sale``      removes ``quantity`` from stock
* ``lend-out``  leaves stock alone but marks units as out on loan
* ``return``    brings loaned units back
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.constants import (
    TXN_LEND_OUT,
    TXN_PURCHASE,
    TXN_RETURN,
    TXN_SALE,
    TRANSACTION_TYPES,
    WALK_IN_PARTY,
)
from ..core.dates import day_end_iso, day_start_iso, to_iso, utcnow_iso
from ..core.errors import StockError
from ..core.money import line_total, quantize_currency
from ..models.partner import Partner
from ..models.product import Product
from ..models.transaction import Transaction
from .pagination import paginate, substring_filter
from .partners import resolve_partner_id
from .products import get_product, lent_quantities

logger = logging.getLogger(__name__)

STOCK_EFFECT = {TXN_PURCHASE: 1, TXN_SALE: -1, TXN_LEND_OUT: 0, TXN_RETURN: 0}
# Loans carry no money: their rows are always booked at a zero price.
UNPRICED_TYPES = (TXN_LEND_OUT, TXN_RETURN)


def list_transactions(
    db: Session,
    *,
    q: str | None = None,
    txn_type: str | None = None,
    product_id: str | None = None,
    partner_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = 10,
):
    stmt = select(Transaction)
    if txn_type:
        stmt = stmt.where(Transaction.type == txn_type)
    if product_id:
        stmt = stmt.where(Transaction.product_id == product_id)
    if partner_id:
        stmt = stmt.where(Transaction.partner_id == partner_id)
    if date_from:
        stmt = stmt.where(Transaction.date >= day_start_iso(date_from))
    if date_to:
        stmt = stmt.where(Transaction.date < day_end_iso(date_to))
    condition = substring_filter(q, Transaction.party, Transaction.type)
    if condition is not None:
        stmt = stmt.where(condition)
    stmt = stmt.order_by(desc(Transaction.date), desc(Transaction.created_at), Transaction.id)
    return paginate(db, stmt, page=page, limit=limit)


def get_transaction(db: Session, transaction_id: str) -> Transaction | None:
    return db.get(Transaction, transaction_id)


def _as_iso(value: datetime | str | None) -> str:
    if value is None:
        return utcnow_iso()
    if isinstance(value, datetime):
        return to_iso(value)
    return value


def _lent_out(db: Session, product: Product) -> int:
    return lent_quantities(db, [product.id]).get(product.id, 0)


def check_stock_rules(db: Session, product: Product) -> None:
    """Raise ``StockError`` when ``product`` is left in an impossible state.

    Stock levels are checked before pending changes are flushed, so the
    database constraints never see a negative stock. The loan count is read
    after the flush.
    """

    details = {"product_id": product.id, "stock": product.stock}
    if product.stock < 0:
        raise StockError("Stock cannot go negative.", details, code="insufficient_stock")
    if product.is_individual and product.stock > 1:
        raise StockError("An individual item cannot hold more than one unit.", details)
    db.flush()
    lent = _lent_out(db, product)
    details["lent_out"] = lent
    if lent < 0:
        raise StockError("More units returned than were lent out.", details)
    if lent > product.stock:
        raise StockError("Lent units exceed the stock on hand.", details)


def precheck(db: Session, product: Product, kind: str, quantity: int) -> None:
    """Reject a movement before anything is written."""

    lent = _lent_out(db, product)
    available = product.stock - lent
    details = {
        "product_id": product.id,
        "requested_quantity": quantity,
        "stock": product.stock,
        "lent_out": lent,
        "available": max(available, 0),
    }
    if kind in (TXN_SALE, TXN_LEND_OUT) and quantity > available:
        logger.warning("stock.rejected", extra={"extra_data": {**details, "type": kind}})
        raise StockError("Not enough units available.", details, code="insufficient_stock")
    if kind == TXN_RETURN and quantity > lent:
        raise StockError("Nothing to return for this quantity.", details)
    if kind == TXN_PURCHASE and product.is_individual and product.stock + quantity > 1:
        raise StockError("An individual item cannot hold more than one unit.", details)


def record_transaction(
    db: Session,
    *,
    product: Product,
    kind: str,
    quantity: int,
    price,
    when: datetime | str | None = None,
    party: str | None = None,
    partner: Partner | None = None,
    note: str | None = None,
) -> Transaction:
    """Stage a ledger row and its stock effect. The caller commits."""

    if kind not in TRANSACTION_TYPES:
        raise ValueError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
    quantity = int(quantity)
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    unit_price = quantize_currency(price)
    if unit_price < 0:
        raise ValueError("price cannot be negative")
    if kind in UNPRICED_TYPES:
        unit_price = quantize_currency(0)

    precheck(db, product, kind, quantity)

    snapshot = (party or "").strip() or (partner.name if partner else None) or WALK_IN_PARTY
    txn = Transaction(
        product_id=product.id,
        type=kind,
        quantity=quantity,
        price=unit_price,
        total_amount=line_total(unit_price, quantity),
        date=_as_iso(when),
        party=snapshot,
        partner_id=partner.id if partner else None,
        note=(note or "").strip() or None,
        created_at=utcnow_iso(),
    )
    product.stock = product.stock + STOCK_EFFECT[kind] * quantity
    product.updated_at = utcnow_iso()
    db.add(txn)
    check_stock_rules(db, product)
    return txn


def create_transaction(db: Session, payload: dict) -> Transaction:
    product = get_product(db, payload.get("product_id") or "")
    if product is None:
        raise LookupError("Product not found")
    try:
        partner = resolve_partner_id(db, payload.get("partner_id"))
        txn = record_transaction(
            db,
            product=product,
            kind=(payload.get("type") or "").strip().lower(),
            quantity=payload.get("quantity") or 0,
            price=payload.get("price") or 0,
            when=payload.get("date"),
            party=payload.get("party"),
            partner=partner,
            note=payload.get("note"),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(txn)
    logger.info(
        "transaction.created",
        extra={"extra_data": {"transaction_id": txn.id, "type": txn.type, "product_id": txn.product_id}},
    )
    return txn


def update_transaction(db: Session, txn: Transaction, payload: dict) -> Transaction:
    """Replace quantity/price/date/party/partner/note and re-balance stock."""

    product = txn.product
    try:
        quantity = int(payload.get("quantity") or 0)
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        unit_price = quantize_currency(payload.get("price") or 0)
        if unit_price < 0:
            raise ValueError("price cannot be negative")
        if txn.type in UNPRICED_TYPES:
            unit_price = quantize_currency(0)
        partner = resolve_partner_id(db, payload.get("partner_id"))

        effect = STOCK_EFFECT[txn.type]
        product.stock = product.stock + effect * (quantity - txn.quantity)
        product.updated_at = utcnow_iso()

        txn.quantity = quantity
        txn.price = unit_price
        txn.total_amount = line_total(unit_price, quantity)
        if payload.get("date") is not None:
            txn.date = _as_iso(payload.get("date"))
        txn.partner_id = partner.id if partner else None
        txn.party = (payload.get("party") or "").strip() or (partner.name if partner else None) or txn.party
        txn.note = (payload.get("note") or "").strip() or None
        check_stock_rules(db, product)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(txn)
    logger.info("transaction.updated", extra={"extra_data": {"transaction_id": txn.id}})
    return txn


def delete_transaction(db: Session, txn: Transaction) -> None:
    """Remove a ledger row and undo its stock effect."""

    product = txn.product
    txn_id = txn.id
    try:
        product.stock = product.stock - STOCK_EFFECT[txn.type] * txn.quantity
        product.updated_at = utcnow_iso()
        db.delete(txn)
        check_stock_rules(db, product)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("transaction.deleted", extra={"extra_data": {"transaction_id": txn_id}})


__all__ = [
    "STOCK_EFFECT",
    "UNPRICED_TYPES",
    "check_stock_rules",
    "create_transaction",
    "delete_transaction",
    "get_transaction",
    "list_transactions",
    "precheck",
    "record_transaction",
    "update_transaction",
]
