"""
Reports module

Read-only aggregates over invoices, payments and clients. The module owns
no tables.

- routers/ -> FastAPI endpoints
- services/ -> queries and aggregation
- schemas/ -> response models
"""

from .routers import dashboard_router, financial_router

__all__ = ["dashboard_router", "financial_router"]
