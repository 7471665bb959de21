from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Text

from ..db.session import Base
from .product import new_id


class Partner(Base):
    """Counterparty (customer or supplier), either a person or a shop."""

    __tablename__ = "partners"
    __table_args__ = (
        CheckConstraint("type IN ('individual', 'shop')", name="ck_partners_type"),
    )

    id = Column(Text, primary_key=True, default=new_id)
    type = Column(Text, nullable=False)
    name = Column(Text, nullable=False, index=True)
    phone = Column(Text, nullable=False, index=True)
    shop_name = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    deleted_at = Column(Text, nullable=True, index=True)

    @property
    def display_name(self) -> str:
        if self.shop_name:
            return f"{self.name} ({self.shop_name})" if self.shop_name != self.name else self.name
        return self.name

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


__all__ = ["Partner"]
