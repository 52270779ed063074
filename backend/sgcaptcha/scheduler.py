"""Background scheduler that keeps solved sessions fresh."""

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sgcaptcha.config import settings
from sgcaptcha.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None


async def refresh_sessions(registry: SessionRegistry) -> int:
    """Re-solve every session whose last solve is older than the max age.

    Sessions that never solved a challenge are left alone.
    """
    max_age = timedelta(minutes=settings.session_max_age_minutes)
    now = datetime.now(UTC)
    refreshed = 0

    for session in registry.sessions():
        if session.last_solve_time is None or now - session.last_solve_time < max_age:
            continue
        try:
            session.invalidate(drop_session_cookie=True)
            if await session.bypass_captcha():
                refreshed += 1
            else:
                logger.warning(f"Session refresh failed for {session.base_origin}")
        except Exception as e:
            logger.error(f"Session refresh crashed for {session.base_origin}: {e}")

    if refreshed:
        logger.info(f"Refresh: re-solved {refreshed} session(s)")
    return refreshed


def start_scheduler(registry: SessionRegistry) -> None:
    """Start the keep-alive scheduler on the running event loop."""
    global scheduler
    if not settings.session_refresh_enabled:
        logger.info("Session refresh disabled")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        refresh_sessions,
        trigger=IntervalTrigger(minutes=settings.session_refresh_interval_minutes),
        args=[registry],
        id="refresh_captcha_sessions",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started - session refresh runs every "
        f"{settings.session_refresh_interval_minutes} minute(s)"
    )


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global scheduler
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Scheduler stopped")
