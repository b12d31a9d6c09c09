"""
Financial Reports Router
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from app.dependencies.dbDependecies import db_dependency, settings_dependency
from app.dependencies.userDependencies import staff_dependency
from ..services.financial import FinancialReportService
from ..schemas import FinancialReport


router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/financial-report", response_model=FinancialReport)
def get_financial_report(
    db: db_dependency,
    settings: settings_dependency,
    auth_context: staff_dependency,
    start_date: Optional[date] = Query(None, description="Due date range start (inclusive)"),
    end_date: Optional[date] = Query(None, description="Due date range end (inclusive)")
):
    """Collected revenue, paid/unpaid counts and tax over invoices due in the range."""
    return FinancialReportService(db, settings).get_financial_report(start_date, end_date)
