from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base
from .product import new_id


class Transaction(Base):
    """One ledger row recording a stock movement against a product.

    ``party`` is a snapshot of the counterparty's name taken when the row was
    written, so history still reads correctly after a partner is renamed or
    deleted. ``partner_id`` is null for walk-in customers.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(
            "type IN ('purchase', 'sale', 'lend-out', 'return')",
            name="ck_transactions_type",
        ),
        CheckConstraint("quantity > 0", name="ck_transactions_quantity"),
        CheckConstraint("price >= 0", name="ck_transactions_price"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    product_id = Column(
        Text,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Text, nullable=False, index=True)
    party = Column(Text, nullable=False)
    partner_id = Column(Text, ForeignKey("partners.id"), nullable=True, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)

    product = relationship("Product", back_populates="transactions", lazy="joined")
    partner = relationship("Partner", lazy="joined")

    @property
    def product_name(self) -> str | None:
        return self.product.name if self.product else None

    @property
    def product_type(self) -> str | None:
        return self.product.type if self.product else None


__all__ = ["Transaction"]
