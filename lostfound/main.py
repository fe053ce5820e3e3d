"""
FastAPI Application: entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lostfound.config import settings
from lostfound.routes import router
from lostfound.services.firebase import init_firebase
from lostfound.services.janitor import periodic_cleanup
from lostfound.services.matching import notification_fanout

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Lost & Found lifecycle engine v1.0.0")

    fb_ok = init_firebase(
        cred_path=settings.firebase_cred_path,
        project_id=settings.firebase_project_id,
    )
    if fb_ok:
        logger.info("✅ Firestore store ready")
    else:
        logger.info("ℹ️ Firestore store disabled (no credentials)")

    janitor_task = None
    if settings.cleanup_interval_seconds > 0:
        janitor_task = asyncio.create_task(
            periodic_cleanup(
                interval=settings.cleanup_interval_seconds,
                run_immediately=settings.cleanup_on_startup,
            )
        )

    yield

    # Shutdown
    if janitor_task:
        janitor_task.cancel()
        try:
            await janitor_task
        except asyncio.CancelledError:
            pass
    await notification_fanout.drain()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Lost & Found Lifecycle Engine",
    description=(
        "Background lifecycle for the campus lost-and-found app: "
        "notification fan-out on new items and retention cleanup of conversations."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Lost & Found Lifecycle Engine",
        "version": "1.0.0",
        "docs": "/docs",
    }
