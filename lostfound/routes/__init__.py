"""
API Routes: health, item-created trigger, cleanup trigger, mark-retrieved,
claimed-items lookup.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from lostfound.config import settings
from lostfound.schemas import (
    ClaimedItemsResponse,
    CleanupSummary,
    DispatchResponse,
    HealthResponse,
    MarkRetrievedResult,
    RetrievalOutcome,
)
from lostfound.services.firebase import get_store
from lostfound.services.lookup import find_claimed_items
from lostfound.services.matching import notification_fanout
from lostfound.services.retention import run_cleanup
from lostfound.services.retrieval import mark_retrieved
from lostfound.services.store import ITEMS, DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_document_store() -> DocumentStore:
    """FastAPI dependency: the configured store, or 503 when Firebase is off."""
    store = get_store()
    if store is None:
        raise HTTPException(status_code=503, detail="Document store not configured")
    return store


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        store="connected" if get_store() is not None else "disabled",
        pending_notifications=notification_fanout.pending,
    )


# ── ItemCreated trigger ─────────────────────────────────

@router.post(
    "/items/{item_id}/created",
    response_model=DispatchResponse,
    status_code=202,
    tags=["items"],
)
async def item_created(item_id: str, store: DocumentStore = Depends(get_document_store)):
    """
    Called once an item is durably stored. Fan-out runs in the background;
    the response never waits on (or reports) notification writes.
    """
    try:
        doc = await asyncio.to_thread(store.get, ITEMS, item_id)
    except Exception as e:
        logger.error("Item %s lookup failed: %s", item_id, e)
        raise HTTPException(status_code=503, detail="Item lookup failed")
    if doc is None:
        raise HTTPException(status_code=404, detail="Item not found")

    if not settings.notifications_enabled:
        return DispatchResponse(item_id=item_id, status="disabled")

    notification_fanout.dispatch(store, doc.data, doc.id)
    return DispatchResponse(item_id=item_id)


# ── Cleanup trigger ─────────────────────────────────────

@router.post("/admin/cleanup", response_model=CleanupSummary, tags=["admin"])
async def trigger_cleanup(store: DocumentStore = Depends(get_document_store)):
    """Run both retention policies now and return the summary."""
    return await asyncio.to_thread(run_cleanup, store, settings)


# ── Mark retrieved ──────────────────────────────────────

@router.delete(
    "/conversations/{conversation_id}/mark-retrieved",
    response_model=MarkRetrievedResult,
    tags=["conversations"],
)
async def conversation_mark_retrieved(
    conversation_id: str,
    user_id: str = Query(..., alias="userId"),
    store: DocumentStore = Depends(get_document_store),
):
    """Participant confirms hand-over: item marked found, conversation purged."""
    try:
        result = await asyncio.to_thread(
            mark_retrieved, store, conversation_id, user_id, settings.cleanup_batch_limit
        )
    except Exception as e:
        logger.error("Conversation %s lookup failed: %s", conversation_id, e)
        raise HTTPException(status_code=503, detail="Conversation lookup failed")

    if result.outcome == RetrievalOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if result.outcome == RetrievalOutcome.FORBIDDEN:
        raise HTTPException(status_code=403, detail="Access denied")
    if result.outcome == RetrievalOutcome.FAILED:
        raise HTTPException(status_code=500, detail="Failed to mark item as retrieved")
    return result


# ── Claimed items ───────────────────────────────────────

@router.get(
    "/users/{user_id}/claimed-items",
    response_model=ClaimedItemsResponse,
    tags=["items"],
)
async def claimed_items(
    user_id: str,
    email: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_document_store),
):
    strategy, items = await asyncio.to_thread(find_claimed_items, store, user_id, email)
    return ClaimedItemsResponse(user_id=user_id, strategy=strategy, items=items)
