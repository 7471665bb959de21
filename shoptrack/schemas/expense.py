from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .common import PageMeta, TrimmedModel, lower_choice

ExpenseCategory = Annotated[
    Literal["rent", "salaries", "utilities", "stock", "other"],
    BeforeValidator(lower_choice),
]


class ExpenseIn(TrimmedModel):
    category: ExpenseCategory
    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(gt=0, max_digits=12)
    date: datetime


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: str
    description: str
    amount: float
    date: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


class ExpensePage(PageMeta):
    items: list[ExpenseOut]
    total_amount: float = 0.0
