"""
Maintenance Scheduler

Runs every minute to close WebSocket subscribers that stopped sending
heartbeats and to drop expired entries from the in-process cache store.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from survey_analytics.services.cache_service import get_cache_service
from survey_analytics.services.progress_broadcaster import get_broadcaster

logger = logging.getLogger(__name__)

STALE_CONNECTION_SECONDS = 120

_scheduler: AsyncIOScheduler | None = None


async def run_maintenance() -> dict:
    closed = await get_broadcaster().check_stale_connections(timeout_seconds=STALE_CONNECTION_SECONDS)
    purged = get_cache_service().purge_expired()
    if closed or purged:
        logger.info(f"Maintenance: closed {closed} stale connections, purged {purged} cache entries")
    return {"stale_connections_closed": closed, "cache_entries_purged": purged}


def start_maintenance():
    """Start the maintenance scheduler."""
    global _scheduler
    if _scheduler:
        return
    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(run_maintenance, "interval", minutes=1, id="maintenance")
    _scheduler.start()
    logger.info("Maintenance scheduler started (every 1 min)")


def stop_maintenance():
    """Stop the maintenance scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Maintenance scheduler stopped")
