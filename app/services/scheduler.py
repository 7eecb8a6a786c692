import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.executors.asyncio import AsyncIOExecutor
from app.config import settings
from app.database import async_session as async_sessionmaker
from app.services.stats_service import DonationStatsService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


async def refresh_badge_snapshots():
    """
    Recompute every user's cached badges from completed requests.
    Completion already refreshes the donor's snapshot; this catches rows
    edited outside the API (admin panel, migrations).
    """
    try:
        async with async_sessionmaker() as session:
            await DonationStatsService(session).refresh_all_badge_caches()
            await session.commit()
    except Exception as e:
        logger.error(f"Error refreshing badge snapshots: {e}", exc_info=True)


def start_scheduler():
    global scheduler

    if scheduler is not None:
        logger.info("Scheduler already running")
        return

    scheduler = AsyncIOScheduler(
        executors={'default': AsyncIOExecutor()},
        job_defaults={
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 30
        }
    )

    scheduler.add_job(
        refresh_badge_snapshots,
        trigger="interval",
        minutes=settings.BADGE_REFRESH_MINUTES,
        id="badge_snapshot_job",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Badge snapshot scheduler started")


def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=True)
        scheduler = None
        logger.info("Badge snapshot scheduler stopped")
