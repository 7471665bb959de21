"""Catalog items: quantity-tracked SKUs and single serialised devices."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..core.config import settings
from ..core.constants import PRODUCT_TYPE_INDIVIDUAL, STOCK_LOW, STOCK_OK, STOCK_OUT
from ..core.identifiers import luhn_valid
from ..db.session import Base


def new_id() -> str:
    return str(uuid4())


class Product(Base):
    """A product row.

    ``price`` is the cost price paid for one unit; the selling price lives on
    each ``sale`` transaction. ``lent_out`` / ``lent_to`` are not columns:
    the CRUD layer attaches them from the ledger when rows are loaded.
    """

    __tablename__ = "products"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("type IN ('individual', 'sku')", name="ck_products_type"),
        CheckConstraint("stock >= 0", name="ck_products_stock"),
        CheckConstraint("price >= 0", name="ck_products_price"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    type = Column(Text, nullable=False)
    name = Column(Text, nullable=False, index=True)
    category = Column(Text, nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    imei = Column(Text, nullable=True, index=True)
    partner_id = Column(Text, ForeignKey("partners.id"), nullable=True, index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    deleted_at = Column(Text, nullable=True, index=True)

    supplier = relationship("Partner", lazy="joined")
    transactions = relationship(
        "Transaction",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_individual(self) -> bool:
        return self.type == PRODUCT_TYPE_INDIVIDUAL

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def supplier_name(self) -> str | None:
        return self.supplier.name if self.supplier else None

    @property
    def available(self) -> int:
        return max((self.stock or 0) - (getattr(self, "lent_out", 0) or 0), 0)

    @property
    def stock_status(self) -> str:
        if not self.stock:
            return STOCK_OUT
        if self.is_individual:
            return STOCK_OK
        if self.stock < settings.LOW_STOCK_THRESHOLD:
            return STOCK_LOW
        return STOCK_OK

    @property
    def imei_valid(self) -> bool | None:
        """Luhn check for 15-digit IMEIs; ``None`` for other serial formats."""

        if not self.imei or len(self.imei) != 15 or not self.imei.isdigit():
            return None
        return luhn_valid(self.imei)


__all__ = ["Product", "new_id"]
