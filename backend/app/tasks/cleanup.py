"""Background reaper for pending notifications

Aggregation already ignores expired and processed rows; this only keeps the
table from growing.
"""
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.metrics import cleanup_notifications_removed_counter, cleanup_runs_counter
from app.db.session import SessionLocal
from app.services.notification_service import delete_stale_notifications

cleanup_logger = logging.getLogger("cleanup")


def run_cleanup() -> int:
    """One reaper pass; returns the number of rows removed"""
    db = SessionLocal()
    try:
        removed = delete_stale_notifications(db)
        cleanup_runs_counter.labels(status="success").inc()
        cleanup_notifications_removed_counter.inc(removed)
        if removed:
            cleanup_logger.info(f"Removed {removed} stale pending notifications")
        return removed
    except SQLAlchemyError as e:
        db.rollback()
        cleanup_runs_counter.labels(status="failure").inc()
        cleanup_logger.error(f"Notification cleanup failed: {e}", exc_info=True)
        return 0
    finally:
        db.close()


async def cleanup_task():
    """Run the reaper every CLEANUP_INTERVAL_SECONDS"""
    while True:
        await asyncio.sleep(settings.CLEANUP_INTERVAL_SECONDS)
        await asyncio.to_thread(run_cleanup)
