from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .common import PageMeta, TrimmedModel, lower_choice

TransactionType = Annotated[
    Literal["purchase", "sale", "lend-out", "return"],
    BeforeValidator(lower_choice),
]


class TransactionCreate(TrimmedModel):
    """Generic ledger entry.

    ``total_amount`` is never read from the client; it is always derived from
    ``price`` and ``quantity``. ``party`` defaults to the partner's name.
    """

    product_id: str
    type: TransactionType
    quantity: int = Field(gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12)
    date: Optional[datetime] = None
    party: Optional[str] = Field(default=None, max_length=200)
    partner_id: Optional[str] = None
    note: Optional[str] = None


class TransactionUpdate(TrimmedModel):
    """Full replace of the mutable ledger fields (type and product are fixed)."""

    quantity: int = Field(gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12)
    date: Optional[datetime] = None
    party: Optional[str] = Field(default=None, max_length=200)
    partner_id: Optional[str] = None
    note: Optional[str] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    product_name: Optional[str] = None
    product_type: Optional[str] = None
    type: str
    quantity: int
    price: float
    total_amount: float
    date: str
    party: str
    partner_id: Optional[str] = None
    note: Optional[str] = None
    created_at: str


class TransactionPage(PageMeta):
    items: list[TransactionOut]
