"""Counter workflows: sell, receive, lend and take back a product.

Each workflow validates first, then stages the partner (if one has to be
created), the ledger row and the stock change, and commits them together.
Any failure rolls the whole unit of work back.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ..core.constants import TXN_LEND_OUT, TXN_PURCHASE, TXN_RETURN, TXN_SALE, WALK_IN_PARTNER_ID
from ..core.errors import StockError
from ..crud.partners import ensure_partner, find_partner, resolve_partner_id
from ..crud.products import attach_lend_status, latest_lend_out, lent_quantities
from ..crud.transactions import precheck, record_transaction
from ..models.partner import Partner
from ..models.product import Product
from ..models.transaction import Transaction

logger = logging.getLogger(__name__)


def _counterparty(
    db: Session,
    *,
    partner_id: str | None,
    name: str | None,
    phone: str | None,
) -> Partner | None:
    """Explicit partner id first, then find-or-create by name/phone, else walk-in."""

    cleaned = (partner_id or "").strip()
    if cleaned and cleaned != WALK_IN_PARTNER_ID:
        return resolve_partner_id(db, cleaned)
    if (name or "").strip():
        return ensure_partner(db, name=name, phone=phone)
    return None


def _finish(db: Session, product: Product, txn: Transaction) -> Transaction:
    db.commit()
    db.refresh(txn)
    db.refresh(product)
    attach_lend_status(db, [product])
    return txn


def sell_product(
    db: Session,
    product: Product,
    *,
    quantity: int = 1,
    price: Decimal,
    partner_id: str | None = None,
    buyer_name: str | None = None,
    buyer_phone: str | None = None,
    date: datetime | None = None,
    note: str | None = None,
) -> Transaction:
    """Record a sale and take the units out of stock.

    Serialised items always sell exactly one unit. The buyer is resolved from
    ``partner_id`` or found/created from ``buyer_name``/``buyer_phone``; with
    neither the sale is booked against the walk-in customer.
    """

    if product.is_individual:
        quantity = 1
    try:
        precheck(db, product, TXN_SALE, quantity)
        buyer = _counterparty(db, partner_id=partner_id, name=buyer_name, phone=buyer_phone)
        txn = record_transaction(
            db,
            product=product,
            kind=TXN_SALE,
            quantity=quantity,
            price=price,
            when=date,
            partner=buyer,
            note=note,
        )
        txn = _finish(db, product, txn)
    except Exception:
        db.rollback()
        raise
    logger.info(
        "sale.recorded",
        extra={
            "extra_data": {
                "transaction_id": txn.id,
                "product_id": product.id,
                "quantity": txn.quantity,
                "total_amount": str(txn.total_amount),
                "stock": product.stock,
            }
        },
    )
    return txn


def receive_stock(
    db: Session,
    product: Product,
    *,
    quantity: int = 1,
    price: Decimal | None = None,
    partner_id: str | None = None,
    supplier_name: str | None = None,
    supplier_phone: str | None = None,
    date: datetime | None = None,
    note: str | None = None,
) -> Transaction:
    """Book a purchase. ``price`` defaults to the product's cost price."""

    if product.is_individual:
        quantity = 1
    unit_price = product.price if price is None else price
    try:
        precheck(db, product, TXN_PURCHASE, quantity)
        supplier = _counterparty(db, partner_id=partner_id, name=supplier_name, phone=supplier_phone)
        txn = record_transaction(
            db,
            product=product,
            kind=TXN_PURCHASE,
            quantity=quantity,
            price=unit_price,
            when=date,
            partner=supplier,
            note=note,
        )
        txn = _finish(db, product, txn)
    except Exception:
        db.rollback()
        raise
    logger.info(
        "stock.received",
        extra={
            "extra_data": {
                "transaction_id": txn.id,
                "product_id": product.id,
                "quantity": txn.quantity,
                "stock": product.stock,
            }
        },
    )
    return txn


def lend_product(
    db: Session,
    product: Product,
    *,
    quantity: int = 1,
    partner_id: str | None = None,
    party: str | None = None,
    phone: str | None = None,
    date: datetime | None = None,
    note: str | None = None,
) -> Transaction:
    """Hand units out on loan. Stock is unchanged; availability drops.

    Borrowers are matched against existing partners only; unlike a sale or
    purchase, lending never creates one.
    """

    if product.is_individual:
        quantity = 1
    try:
        precheck(db, product, TXN_LEND_OUT, quantity)
        cleaned = (partner_id or "").strip()
        if cleaned and cleaned != WALK_IN_PARTNER_ID:
            borrower = resolve_partner_id(db, cleaned)
        else:
            borrower = find_partner(db, name=party, phone=phone)
        txn = record_transaction(
            db,
            product=product,
            kind=TXN_LEND_OUT,
            quantity=quantity,
            price=0,
            when=date,
            party=party,
            partner=borrower,
            note=note,
        )
        txn = _finish(db, product, txn)
    except Exception:
        db.rollback()
        raise
    logger.info(
        "product.lent",
        extra={"extra_data": {"transaction_id": txn.id, "product_id": product.id, "party": txn.party}},
    )
    return txn


def return_product(
    db: Session,
    product: Product,
    *,
    date: datetime | None = None,
    note: str | None = None,
) -> Transaction:
    """Close the open loan by booking a ``return`` for every unit still out."""

    try:
        outstanding = lent_quantities(db, [product.id]).get(product.id, 0)
        if outstanding <= 0:
            logger.warning("return.rejected", extra={"extra_data": {"product_id": product.id}})
            raise StockError(
                "This product is not lent out.",
                {"product_id": product.id, "lent_out": 0},
                code="not_lent",
            )
        last = latest_lend_out(db, product.id)
        txn = record_transaction(
            db,
            product=product,
            kind=TXN_RETURN,
            quantity=outstanding,
            price=0,
            when=date,
            party=last.party if last else None,
            partner=last.partner if last else None,
            note=note,
        )
        txn = _finish(db, product, txn)
    except Exception:
        db.rollback()
        raise
    logger.info(
        "product.returned",
        extra={"extra_data": {"transaction_id": txn.id, "product_id": product.id, "quantity": txn.quantity}},
    )
    return txn


__all__ = ["lend_product", "receive_stock", "return_product", "sell_product"]
