from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Numeric, Text

from ..db.session import Base
from .product import new_id


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint(
            "category IN ('rent', 'salaries', 'utilities', 'stock', 'other')",
            name="ck_expenses_category",
        ),
        CheckConstraint("amount > 0", name="ck_expenses_amount"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    category = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    deleted_at = Column(Text, nullable=True, index=True)


__all__ = ["Expense"]
