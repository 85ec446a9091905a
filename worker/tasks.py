import asyncio
import logging

from listingsync.core.telemetry import setup_tracing
from listingsync.services.run_lock import RunAlreadyInProgress
from listingsync.services.runner import run_sync_locked
from worker.celery_app import celery


log = logging.getLogger(__name__)


async def _run_listing_sync() -> dict:
    try:
        result = await run_sync_locked()
    except RunAlreadyInProgress as e:
        log.warning("scheduled sync skipped: %s", e)
        return {"status": "skipped", "reason": str(e)}
    return result.to_dict()


@celery.task(name="worker.tasks.run_listing_sync")
def run_listing_sync() -> dict:
    # no task retries: the next scheduled trigger is the retry
    setup_tracing()
    log.info("Running scheduled listing sync")
    return asyncio.run(_run_listing_sync())
