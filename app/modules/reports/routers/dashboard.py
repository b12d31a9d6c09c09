"""
Dashboard Router
"""

from typing import List

from fastapi import APIRouter

from app.dependencies.dbDependecies import db_dependency, settings_dependency
from app.dependencies.userDependencies import staff_dependency
from ..services.dashboard import DashboardReportService
from ..schemas import DashboardStats, MonthlyData, PaymentStatusCount


router = APIRouter(prefix="/dashboard", tags=["Reports"])


@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(db: db_dependency, settings: settings_dependency, auth_context: staff_dependency):
    return DashboardReportService(db, settings).get_stats()


@router.get("/monthly-data", response_model=List[MonthlyData])
def get_monthly_data(db: db_dependency, settings: settings_dependency, auth_context: staff_dependency):
    return DashboardReportService(db, settings).get_monthly_data()


@router.get("/payment-status", response_model=List[PaymentStatusCount])
def get_payment_status(db: db_dependency, settings: settings_dependency, auth_context: staff_dependency):
    return DashboardReportService(db, settings).get_payment_status()
