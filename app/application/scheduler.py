"""
Background scheduler — runs periodic jobs inside the FastAPI process.

Enabled with SCHEDULER_ENABLED=true for deployments without an external
cron hitting POST /api/sync-renewals.

Jobs:
  - Renewal sync (06:00 in TIMEZONE)
"""
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_renewal_sync():
    from app.application.renewal_sync import sync_renewals
    from app.infrastructure.remote.sql_store import SqlBackend

    settings = get_settings()
    today = datetime.now(ZoneInfo(settings.TIMEZONE)).date()
    try:
        sync_renewals(SqlBackend.from_settings(settings), today, settings.RENEWAL_WINDOW_DAYS)
    except Exception:
        logger.exception("Renewal sync job failed")


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    settings = get_settings()

    scheduler.add_job(
        _run_renewal_sync,
        CronTrigger(hour=6, minute=0, timezone=ZoneInfo(settings.TIMEZONE)),
        id="renewal_sync",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started: renewal_sync (06:00 %s)", settings.TIMEZONE)


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
