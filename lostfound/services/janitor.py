"""
Lost & Found lifecycle engine: cleanup janitor.

Periodic sweep that runs both retention policies. Hourly by default and
once at startup. Idempotent: safe to run as often as wanted, and a run
that fails is simply retried on the next tick.
"""

import asyncio
import logging
from typing import Optional

from lostfound.schemas import CleanupSummary
from lostfound.services.firebase import get_store
from lostfound.services.retention import run_cleanup
from lostfound.services.store import DocumentStore

logger = logging.getLogger(__name__)


async def cleanup_janitor(
    store: Optional[DocumentStore] = None, config=None
) -> Optional[CleanupSummary]:
    """
    Single sweep. Runs the synchronous cleanup in a worker thread so the
    event loop keeps serving requests. Returns None when there is no store
    or the sweep failed.
    """
    store = store or get_store()
    if store is None:
        logger.info("ℹ️ Cleanup skipped, no document store configured")
        return None

    logger.info("🧹 Cleanup janitor: starting sweep...")
    try:
        summary = await asyncio.to_thread(run_cleanup, store, config)
    except Exception as e:
        logger.error("Cleanup janitor sweep failed: %s", e)
        return None
    logger.info("🧹 Cleanup janitor: sweep complete")
    return summary


async def periodic_cleanup(
    interval: int,
    run_immediately: bool = True,
    store: Optional[DocumentStore] = None,
    config=None,
) -> None:
    """Run ``cleanup_janitor`` every ``interval`` seconds until cancelled."""
    if run_immediately:
        await cleanup_janitor(store, config)

    while True:
        try:
            await asyncio.sleep(interval)
            await cleanup_janitor(store, config)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Cleanup loop error: %s", e)
