"""
Dashboard Reports Service

Headline figures, monthly totals and status distribution.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy import and_, extract, func

from .base import BaseReportService
from ..schemas import DashboardStats, MonthlyData, PaymentStatusCount
from app.modules.clients.models import Client
from app.modules.invoices.models import Invoice, InvoiceStatus, to_money


class DashboardReportService(BaseReportService):

    def get_stats(self) -> DashboardStats:
        """
        Revenue counts the full amount of Paid invoices; pending payments
        counts every unpaid invoice, overdue ones included.

        ``total_revenue`` adds amounts as they are, whatever their currency;
        ``revenue_by_currency`` keeps each currency apart.
        """
        total_invoices = self._get_base_invoice_query().count()
        rows = (
            self.db.query(Invoice.currency, func.coalesce(func.sum(Invoice.amount), 0))
            .filter(Invoice.stored_status == InvoiceStatus.PAID.value)
            .group_by(Invoice.currency)
            .all()
        )
        revenue_by_currency = {currency: to_money(amount) for currency, amount in rows}
        total_revenue = sum(revenue_by_currency.values(), Decimal("0.00"))
        pending = self._get_base_invoice_query().filter(
            Invoice.stored_status == InvoiceStatus.PENDING.value
        ).count()
        active_clients = self.db.query(func.count(Client.id)).scalar()

        return DashboardStats(
            total_invoices=total_invoices,
            total_revenue=to_money(total_revenue),
            revenue_by_currency=revenue_by_currency,
            pending_payments=pending,
            active_clients=active_clients or 0
        )

    def get_monthly_data(self) -> List[MonthlyData]:
        """Invoice count and invoiced amount per creation month"""
        year = extract("year", Invoice.created_at)
        month = extract("month", Invoice.created_at)
        rows = (
            self.db.query(
                year.label("year"),
                month.label("month"),
                func.coalesce(func.sum(Invoice.amount), 0).label("revenue"),
                func.count(Invoice.id).label("invoices")
            )
            .group_by(year, month)
            .order_by(year, month)
            .all()
        )
        return [
            MonthlyData(
                year=int(row.year),
                month=int(row.month),
                month_name=calendar.month_name[int(row.month)],
                revenue=to_money(row.revenue),
                invoices=row.invoices
            )
            for row in rows
        ]

    def get_payment_status(self, today: date = None) -> List[PaymentStatusCount]:
        """Invoice count per reported status; Overdue is split out of Pending"""
        today = today or date.today()
        pending = Invoice.stored_status == InvoiceStatus.PENDING.value

        paid_count = self._get_base_invoice_query().filter(
            Invoice.stored_status == InvoiceStatus.PAID.value
        ).count()
        overdue_count = self._get_base_invoice_query().filter(and_(pending, Invoice.due_date < today)).count()
        pending_count = self._get_base_invoice_query().filter(pending).count() - overdue_count

        return [
            PaymentStatusCount(status=InvoiceStatus.PENDING.value, count=pending_count),
            PaymentStatusCount(status=InvoiceStatus.PAID.value, count=paid_count),
            PaymentStatusCount(status=InvoiceStatus.OVERDUE.value, count=overdue_count),
        ]
