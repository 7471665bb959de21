from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .product import LentItem, ProductOut


class TransactionCounts(BaseModel):
    sales: int = 0
    purchases: int = 0
    lend_outs: int = 0
    returns: int = 0


class MonthlyPoint(BaseModel):
    month: str
    sales: float
    profit: float


class ExpenseSlice(BaseModel):
    category: str
    label: str
    amount: float


class SalesPoint(BaseModel):
    date: str
    label: str
    revenue: float


class SummaryReport(BaseModel):
    timeframe: str
    start: Optional[str] = None
    end: Optional[str] = None
    total_revenue: float
    cost_of_goods: float
    operational_expenses: float
    total_expenses: float
    net_profit: float
    units_sold: int
    counts: TransactionCounts
    monthly: list[MonthlyPoint]
    expense_breakdown: list[ExpenseSlice]
    sales_trend: list[SalesPoint]


class InventoryReport(BaseModel):
    product_count: int
    unit_count: int
    stock_value: float
    low_stock_threshold: int
    low_stock: list[ProductOut]
    out_of_stock: list[ProductOut]
    lent: list[LentItem]
