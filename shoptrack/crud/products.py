"""Product CRUD plus the ledger-derived lend status attached to each row."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import case, desc, func, select
from sqlalchemy.orm import Session

from ..core.constants import PRODUCT_TYPE_INDIVIDUAL, PRODUCT_TYPES, TXN_LEND_OUT, TXN_RETURN
from ..core.dates import utcnow_iso
from ..core.errors import ConflictError, StockError
from ..core.identifiers import normalize_imei
from ..core.money import quantize_currency
from ..models.product import Product
from ..models.transaction import Transaction
from .pagination import paginate, substring_filter
from .partners import resolve_partner_id

logger = logging.getLogger(__name__)


def list_products(
    db: Session,
    *,
    q: str | None = None,
    product_type: str | None = None,
    category: str | None = None,
    in_stock: bool | None = None,
    include_deleted: bool = False,
    page: int = 1,
    limit: int = 10,
):
    stmt = select(Product)
    if not include_deleted:
        stmt = stmt.where(Product.deleted_at.is_(None))
    if product_type:
        stmt = stmt.where(Product.type == product_type)
    if category:
        stmt = stmt.where(func.lower(Product.category) == category.strip().lower())
    if in_stock is not None:
        # Filters on units available to sell, so fully lent products count as out.
        available = Product.stock - _lent_subquery()
        stmt = stmt.where(available > 0 if in_stock else available <= 0)
    condition = substring_filter(q, Product.name, Product.category, Product.imei)
    if condition is not None:
        stmt = stmt.where(condition)
    stmt = stmt.order_by(func.lower(Product.name), Product.id)
    rows, total = paginate(db, stmt, page=page, limit=limit)
    attach_lend_status(db, rows)
    return rows, total


def get_product(db: Session, product_id: str, *, include_deleted: bool = False) -> Product | None:
    product = db.get(Product, product_id)
    if product is None or (product.deleted_at and not include_deleted):
        return None
    attach_lend_status(db, [product])
    return product


def _signed_lent_quantity():
    return case(
        (Transaction.type == TXN_LEND_OUT, Transaction.quantity),
        (Transaction.type == TXN_RETURN, -Transaction.quantity),
        else_=0,
    )


def _lent_subquery():
    return (
        select(func.coalesce(func.sum(_signed_lent_quantity()), 0))
        .where(Transaction.product_id == Product.id)
        .correlate(Product)
        .scalar_subquery()
    )


def lent_quantities(db: Session, product_ids) -> dict[str, int]:
    """Units currently out on loan per product (lend-outs minus returns)."""

    ids = tuple(product_ids)
    if not ids:
        return {}
    stmt = (
        select(Transaction.product_id, func.coalesce(func.sum(_signed_lent_quantity()), 0))
        .where(Transaction.product_id.in_(ids))
        .group_by(Transaction.product_id)
    )
    return {product_id: int(quantity or 0) for product_id, quantity in db.execute(stmt).all()}


def latest_lend_out(db: Session, product_id: str) -> Transaction | None:
    stmt = (
        select(Transaction)
        .where(Transaction.product_id == product_id, Transaction.type == TXN_LEND_OUT)
        .order_by(desc(Transaction.date), desc(Transaction.created_at))
    )
    return db.execute(stmt).unique().scalars().first()


def attach_lend_status(db: Session, items) -> None:
    items = list(items)
    if not items:
        return
    lent = lent_quantities(db, [item.id for item in items])
    for item in items:
        quantity = lent.get(item.id, 0)
        setattr(item, "lent_out", quantity)
        setattr(item, "lent_to", None)
        if quantity > 0:
            last = latest_lend_out(db, item.id)
            if last is not None:
                setattr(item, "lent_to", last.party)


def _ensure_unique(db: Session, *, name: str, imei: str | None, exclude_id: str | None = None) -> None:
    stmt = select(Product.id).where(
        Product.deleted_at.is_(None),
        func.lower(Product.name) == name.lower(),
    )
    if exclude_id:
        stmt = stmt.where(Product.id != exclude_id)
    if db.execute(stmt).scalars().first():
        raise ConflictError("A product with this name already exists.", {"name": name})
    if imei:
        stmt = select(Product.id).where(Product.deleted_at.is_(None), Product.imei == imei)
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        if db.execute(stmt).scalars().first():
            raise ConflictError("A product with this IMEI already exists.", {"imei": imei})


def _clean(db: Session, payload: dict, *, creating: bool) -> dict:
    product_type = (payload.get("type") or "").strip().lower()
    if product_type not in PRODUCT_TYPES:
        raise ValueError(f"type must be one of {', '.join(PRODUCT_TYPES)}")
    name = (payload.get("name") or "").strip()
    category = (payload.get("category") or "").strip()
    if not name:
        raise ValueError("name is required")
    if not category:
        raise ValueError("category is required")
    price = payload.get("price")
    if price is None:
        raise ValueError("price is required")
    price = quantize_currency(price)
    if price < 0:
        raise ValueError("price cannot be negative")
    stock = int(payload.get("stock") or 0)
    if stock < 0:
        raise ValueError("stock cannot be negative")

    imei = None
    if product_type == PRODUCT_TYPE_INDIVIDUAL:
        imei = normalize_imei(payload.get("imei"))
        # A serialised item is one physical unit: it starts in stock and can
        # only ever be present (1) or gone (0).
        stock = 1 if creating else min(stock, 1)

    partner = resolve_partner_id(db, payload.get("partner_id"))
    return {
        "type": product_type,
        "name": name,
        "category": category,
        "price": price,
        "stock": stock,
        "imei": imei,
        "partner_id": partner.id if partner else None,
    }


def create_product(db: Session, payload: dict) -> Product:
    data = _clean(db, payload, creating=True)
    _ensure_unique(db, name=data["name"], imei=data["imei"])
    now = utcnow_iso()
    product = Product(**data, created_at=now, updated_at=now)
    db.add(product)
    db.commit()
    db.refresh(product)
    attach_lend_status(db, [product])
    logger.info(
        "product.created",
        extra={"extra_data": {"product_id": product.id, "type": product.type, "stock": product.stock}},
    )
    return product


def update_product(db: Session, product: Product, payload: dict) -> Product:
    """Replace the mutable fields of an active product."""

    data = _clean(db, payload, creating=False)
    if data["type"] == PRODUCT_TYPE_INDIVIDUAL and product.type != PRODUCT_TYPE_INDIVIDUAL:
        requested = int(payload.get("stock") or 0)
        if product.stock > 1 or requested > 1:
            raise StockError(
                "Only a product with at most one unit can become an individual item.",
                {"product_id": product.id, "stock": product.stock, "requested_stock": requested},
                code="type_change_blocked",
            )
    _ensure_unique(db, name=data["name"], imei=data["imei"], exclude_id=product.id)
    lent = lent_quantities(db, [product.id]).get(product.id, 0)
    if lent > data["stock"]:
        raise StockError(
            "Stock cannot drop below the units currently lent out.",
            {"product_id": product.id, "lent_out": lent, "requested_stock": data["stock"]},
        )
    for key, value in data.items():
        setattr(product, key, value)
    product.updated_at = utcnow_iso()
    db.commit()
    db.refresh(product)
    attach_lend_status(db, [product])
    logger.info("product.updated", extra={"extra_data": {"product_id": product.id}})
    return product


def delete_product(db: Session, product: Product) -> int:
    """Hard delete ``product`` together with every ledger row that references it.

    Returns the number of transactions removed.
    """

    product_id = product.id
    removed = db.execute(
        select(func.count()).select_from(Transaction).where(Transaction.product_id == product_id)
    ).scalar_one()
    db.delete(product)
    db.commit()
    logger.info(
        "product.deleted",
        extra={"extra_data": {"product_id": product_id, "transactions_removed": int(removed)}},
    )
    return int(removed)


def archive_product(db: Session, product: Product) -> Product:
    """Soft delete: hide the product from listings but keep its history."""

    product.deleted_at = utcnow_iso()
    product.updated_at = product.deleted_at
    db.commit()
    db.refresh(product)
    attach_lend_status(db, [product])
    logger.info("product.archived", extra={"extra_data": {"product_id": product.id}})
    return product


def list_lent_products(db: Session) -> list[dict[str, object]]:
    """Active products with units out on loan, with the current borrower."""

    lent = {pid: qty for pid, qty in lent_quantities(db, _active_product_ids(db)).items() if qty > 0}
    if not lent:
        return []
    stmt = select(Product).where(Product.id.in_(tuple(lent))).order_by(func.lower(Product.name))
    products = db.execute(stmt).unique().scalars().all()
    attach_lend_status(db, products)
    rows = []
    for product in products:
        last = latest_lend_out(db, product.id)
        rows.append(
            {
                "product": product,
                "party": last.party if last else None,
                "partner_id": last.partner_id if last else None,
                "quantity": lent[product.id],
                "since": last.date if last else None,
            }
        )
    return rows


def stock_value(products) -> Decimal:
    return quantize_currency(sum((quantize_currency(p.price) * p.stock for p in products), Decimal("0")))


def _active_product_ids(db: Session) -> list[str]:
    return list(db.execute(select(Product.id).where(Product.deleted_at.is_(None))).scalars().all())


__all__ = [
    "archive_product",
    "attach_lend_status",
    "create_product",
    "delete_product",
    "get_product",
    "latest_lend_out",
    "lent_quantities",
    "list_lent_products",
    "list_products",
    "stock_value",
    "update_product",
]
