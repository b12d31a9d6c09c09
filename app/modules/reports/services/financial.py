"""
Financial Reports Service

Collected revenue, paid/unpaid counts and the tax due on collected revenue.
"""

import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import selectinload

from .base import BaseReportService
from ..schemas import FinancialReport
from app.common.exceptions import InvalidDataError
from app.modules.invoices.models import Invoice, InvoiceStatus, to_money

logger = logging.getLogger(__name__)


class FinancialReportService(BaseReportService):

    def get_financial_report(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> FinancialReport:
        """
        Report over invoices due within the given range.

        Revenue is what was actually collected (sum of payments), grouped by
        the month the invoice was created in. Totals add amounts across
        currencies; ``revenue_by_currency`` keeps them apart.
        """
        if start_date and end_date and end_date < start_date:
            raise InvalidDataError(
                "end_date must be greater than or equal to start_date",
                status_code=422,
                field="end_date"
            )

        query = self._apply_date_filter(
            self._get_base_invoice_query().options(selectinload(Invoice.payments)),
            Invoice.due_date,
            start_date,
            end_date
        )
        invoices = query.order_by(Invoice.created_at).all()

        total_revenue = Decimal("0.00")
        paid_invoices = 0
        revenue_summary: Dict[str, Decimal] = {}
        revenue_by_currency: Dict[str, Decimal] = {}

        for invoice in invoices:
            collected = invoice.paid_amount
            total_revenue += collected
            if invoice.stored_status == InvoiceStatus.PAID.value:
                paid_invoices += 1
            month = calendar.month_name[invoice.created_at.month] if invoice.created_at else "Unknown"
            revenue_summary[month] = revenue_summary.get(month, Decimal("0.00")) + collected
            revenue_by_currency[invoice.currency] = revenue_by_currency.get(invoice.currency, Decimal("0.00")) + collected

        tax_rate = Decimal(str(self.settings.REPORT_TAX_RATE))
        logger.debug(f"Financial report over {len(invoices)} invoices ({start_date} - {end_date})")

        return FinancialReport(
            start_date=start_date,
            end_date=end_date,
            total_revenue=to_money(total_revenue),
            revenue_by_currency=revenue_by_currency,
            total_invoices=len(invoices),
            paid_invoices=paid_invoices,
            unpaid_invoices=len(invoices) - paid_invoices,
            revenue_summary=revenue_summary,
            tax_rate=tax_rate,
            total_tax=to_money(total_revenue * tax_rate)
        )
