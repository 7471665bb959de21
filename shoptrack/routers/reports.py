from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import http_error
from ..db.session import get_db
from ..schemas.report import InventoryReport, SummaryReport
from ..services.reporting import calculate_summary, inventory_report

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/summary", response_model=SummaryReport)
def api_summary_report(
    timeframe: Literal["weekly", "monthly", "all"] = "monthly",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
):
    try:
        if date_from and date_to and date_from > date_to:
            raise ValueError("date_from must not be after date_to")
        return calculate_summary(db, timeframe, date_from=date_from, date_to=date_to)
    except ValueError as exc:
        raise http_error(exc) from exc


@router.get("/inventory", response_model=InventoryReport)
def api_inventory_report(db: Session = Depends(get_db)):
    return InventoryReport.model_validate(inventory_report(db), from_attributes=True)
