"""
Response models for the report endpoints.
"""

from decimal import Decimal
from typing import Dict, List, Optional
from datetime import date

from app.common.schemas import ApiModel


class DashboardStats(ApiModel):
    total_invoices: int
    total_revenue: Decimal
    revenue_by_currency: Dict[str, Decimal]
    pending_payments: int
    active_clients: int


class MonthlyData(ApiModel):
    year: int
    month: int
    month_name: str
    revenue: Decimal
    invoices: int


class PaymentStatusCount(ApiModel):
    status: str
    count: int


class FinancialReport(ApiModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_revenue: Decimal
    revenue_by_currency: Dict[str, Decimal]
    total_invoices: int
    paid_invoices: int
    unpaid_invoices: int
    revenue_summary: Dict[str, Decimal]
    tax_rate: Decimal
    total_tax: Decimal
