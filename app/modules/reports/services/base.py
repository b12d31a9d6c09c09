"""
Base service class for Reports module
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.modules.invoices.models import Invoice


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def _get_base_invoice_query(self):
        return self.db.query(Invoice)

    def _apply_date_filter(self, query, date_field, start_date: Optional[date] = None, end_date: Optional[date] = None):
        """Inclusive date range; either bound may be omitted"""
        if start_date:
            query = query.filter(date_field >= start_date)
        if end_date:
            query = query.filter(date_field <= end_date)
        return query
