from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    EXPENSE_CATEGORIES,
    STOCK_LOW,
    STOCK_OUT,
    TXN_LEND_OUT,
    TXN_PURCHASE,
    TXN_RETURN,
    TXN_SALE,
)
from ..core.dates import day_end_iso, day_start_iso, parse_iso, utcnow
from ..core.money import quantize_currency, to_decimal
from ..crud.products import attach_lend_status, list_lent_products, stock_value
from ..models.expense import Expense
from ..models.product import Product
from ..models.transaction import Transaction

TIMEFRAMES = ("weekly", "monthly", "all")


def resolve_range(
    timeframe: str = "all",
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Translate a timeframe (or explicit dates) into ISO bounds.

    ``end`` is exclusive. Explicit dates win over ``timeframe``.
    """

    if date_from or date_to:
        return {
            "timeframe": "custom",
            "start": day_start_iso(date_from) if date_from else None,
            "end": day_end_iso(date_to) if date_to else None,
        }

    timeframe = (timeframe or "all").strip().lower()
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"timeframe must be one of {', '.join(TIMEFRAMES)}")
    today = (now or utcnow()).date()
    if timeframe == "weekly":
        offset = (today.weekday() - settings.WEEK_STARTS_ON) % 7
        start = day_start_iso(today - timedelta(days=offset))
    elif timeframe == "monthly":
        start = day_start_iso(today.replace(day=1))
    else:
        start = None
    return {"timeframe": timeframe, "start": start, "end": None}


def _in_range(value: str, start: str | None, end: str | None) -> bool:
    if start and value < start:
        return False
    if end and value >= end:
        return False
    return True


def _unit_cost(txn: Transaction) -> Decimal:
    return quantize_currency(txn.product.price) if txn.product else Decimal("0")


def _month_label(value: str) -> tuple[str, str]:
    parsed = parse_iso(value)
    if parsed is None:
        return value[:7], value[:7]
    return parsed.strftime("%Y-%m"), parsed.strftime("%b %y")


def _day_label(value: str) -> str:
    parsed = parse_iso(value)
    return parsed.strftime("%d %b") if parsed else value[:10]


def calculate_summary(
    db: Session,
    timeframe: str = "all",
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Revenue, cost and profit for a period plus the all-time breakdowns.

    Cost of goods is the product's current cost price times the quantity sold.
    Monthly figures and the expense breakdown always cover the full history.
    """

    window = resolve_range(timeframe, date_from=date_from, date_to=date_to, now=now)
    start, end = window["start"], window["end"]

    transactions: Iterable[Transaction] = (
        db.execute(select(Transaction).order_by(Transaction.date, Transaction.created_at)).unique().scalars().all()
    )
    expenses: Iterable[Expense] = (
        db.execute(select(Expense).where(Expense.deleted_at.is_(None)).order_by(Expense.date)).scalars().all()
    )

    counts = {"sales": 0, "purchases": 0, "lend_outs": 0, "returns": 0}
    count_keys = {TXN_SALE: "sales", TXN_PURCHASE: "purchases", TXN_LEND_OUT: "lend_outs", TXN_RETURN: "returns"}

    total_revenue = Decimal("0")
    cost_of_goods = Decimal("0")
    units_sold = 0
    sales_trend = []
    monthly: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    for txn in transactions:
        key, label = _month_label(txn.date)
        month = monthly.setdefault(key, {"month": label, "sales": Decimal("0"), "profit": Decimal("0")})
        revenue = to_decimal(txn.total_amount)
        cost = _unit_cost(txn) * txn.quantity
        if txn.type == TXN_SALE:
            month["sales"] += revenue
            month["profit"] += revenue - cost

        if not _in_range(txn.date, start, end):
            continue
        counts[count_keys[txn.type]] += 1
        if txn.type == TXN_SALE:
            total_revenue += revenue
            cost_of_goods += cost
            units_sold += txn.quantity
            sales_trend.append(
                {"date": txn.date, "label": _day_label(txn.date), "revenue": quantize_currency(revenue)}
            )

    operational_expenses = Decimal("0")
    by_category: Dict[str, Decimal] = {}
    for expense in expenses:
        amount = to_decimal(expense.amount)
        by_category[expense.category] = by_category.get(expense.category, Decimal("0")) + amount
        if _in_range(expense.date, start, end):
            operational_expenses += amount

    total_expenses = cost_of_goods + operational_expenses
    expense_breakdown = [
        {
            "category": category,
            "label": category.capitalize(),
            "amount": quantize_currency(by_category[category]),
        }
        for category in EXPENSE_CATEGORIES
        if category in by_category
    ]

    return {
        "timeframe": window["timeframe"],
        "start": start,
        "end": end,
        "total_revenue": quantize_currency(total_revenue),
        "cost_of_goods": quantize_currency(cost_of_goods),
        "operational_expenses": quantize_currency(operational_expenses),
        "total_expenses": quantize_currency(total_expenses),
        "net_profit": quantize_currency(total_revenue - total_expenses),
        "units_sold": units_sold,
        "counts": counts,
        "monthly": [
            {
                "month": data["month"],
                "sales": quantize_currency(data["sales"]),
                "profit": quantize_currency(data["profit"]),
            }
            for data in monthly.values()
        ],
        "expense_breakdown": expense_breakdown,
        "sales_trend": sales_trend,
    }


def inventory_report(db: Session) -> Dict[str, Any]:
    """Stock valuation and the items that need attention."""

    products = (
        db.execute(select(Product).where(Product.deleted_at.is_(None)).order_by(Product.name))
        .unique()
        .scalars()
        .all()
    )
    attach_lend_status(db, products)

    units = 0
    low_stock = []
    out_of_stock = []
    for product in products:
        units += product.stock
        if product.stock_status == STOCK_OUT:
            out_of_stock.append(product)
        elif product.stock_status == STOCK_LOW:
            low_stock.append(product)

    return {
        "product_count": len(products),
        "unit_count": units,
        "stock_value": stock_value(products),
        "low_stock_threshold": settings.LOW_STOCK_THRESHOLD,
        "low_stock": low_stock,
        "out_of_stock": out_of_stock,
        "lent": list_lent_products(db),
    }


__all__ = ["TIMEFRAMES", "calculate_summary", "inventory_report", "resolve_range"]
