from .dashboard import DashboardReportService
from .financial import FinancialReportService

__all__ = ["DashboardReportService", "FinancialReportService"]
