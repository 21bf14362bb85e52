"""
Dashboard API endpoint
"""
from datetime import date

from fastapi import APIRouter, Depends

from app.api.deps import get_loaded_store, get_today, require_identity
from app.application.dashboard import DashboardService
from app.application.subscription_store import SubscriptionStore
from app.config import get_settings


router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"], dependencies=[Depends(require_identity)])


@router.get("/")
def get_dashboard(
    store: SubscriptionStore = Depends(get_loaded_store),
    today: date = Depends(get_today),
):
    """Totals, upcoming renewals, category breakdown, top subscriptions"""
    settings = get_settings()
    return DashboardService(store.list()).get_dashboard(
        today,
        upcoming_days=settings.DASHBOARD_UPCOMING_DAYS,
        upcoming_limit=settings.DASHBOARD_UPCOMING_LIMIT,
    )
