"""
Lost & Found lifecycle engine: retention policies.

Two independent, idempotent policies pick conversations to purge:

- resolved items: conversations about items marked found more than
  ``threshold_hours`` ago
- stale conversations: conversations created more than
  ``threshold_days`` ago, whatever the item's status

Each policy hands its selection to the ``CascadingDeleter``. The sets
may overlap; a conversation already purged is simply not selected again.
``run_cleanup`` runs both and returns the structured summary.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from lostfound.schemas import CleanupSummary, PolicyResult
from lostfound.services.cascade import BATCH_LIMIT, CascadingDeleter
from lostfound.services.normalizer import normalize_conversation, normalize_item
from lostfound.services.store import CONVERSATIONS, ITEMS, DocumentStore, where

logger = logging.getLogger(__name__)


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


# ── Selection ───────────────────────────────────────────

def select_resolved_items(
    store: DocumentStore, threshold_hours: int, now: Optional[datetime] = None
) -> list[str]:
    """Ids of items with status found and ``foundAt <= now - threshold_hours``."""
    cutoff = _now(now) - timedelta(hours=threshold_hours)

    # Older documents carry the status under ``kind``
    docs = {}
    for field in ("status", "kind"):
        for doc in store.query(ITEMS, [where(field, "==", "found")]):
            docs.setdefault(doc.id, doc)

    item_ids = []
    for doc_id, doc in docs.items():
        item = normalize_item(doc.data, doc_id)
        if item.is_found and item.found_at and item.found_at <= cutoff:
            item_ids.append(item.id)
    return item_ids


def select_resolved_item_conversations(
    store: DocumentStore, threshold_hours: int, now: Optional[datetime] = None
) -> tuple[list[str], list[str]]:
    """(item ids, conversation ids) selected by the resolved-items policy."""
    item_ids = select_resolved_items(store, threshold_hours, now)
    conversation_ids: list[str] = []
    for item_id in item_ids:
        for doc in store.query(CONVERSATIONS, [where("itemId", "==", item_id)]):
            if doc.id not in conversation_ids:
                conversation_ids.append(doc.id)
    return item_ids, conversation_ids


def select_stale_conversations(
    store: DocumentStore, threshold_days: int, now: Optional[datetime] = None
) -> list[str]:
    """Ids of conversations with ``createdAt <= now - threshold_days``."""
    cutoff = _now(now) - timedelta(days=threshold_days)
    selected = []
    # Only `createdAt` is queryable server-side; conversations that carry the
    # creation time under another field name are never selected.
    for doc in store.query(CONVERSATIONS, [where("createdAt", "<=", cutoff)]):
        conversation = normalize_conversation(doc.data, doc.id)
        if conversation.created_at and conversation.created_at <= cutoff:
            selected.append(conversation.id)
    return selected


# ── Policies ────────────────────────────────────────────

def purge_resolved_item_conversations(
    store: DocumentStore,
    threshold_hours: int = 24,
    enabled: bool = True,
    batch_limit: int = BATCH_LIMIT,
    now: Optional[datetime] = None,
) -> PolicyResult:
    """Purge conversations (and messages) of items resolved ``threshold_hours`` ago."""
    if not enabled:
        logger.info("Resolved-item cleanup is disabled by configuration, no action taken")
        return PolicyResult(enabled=False)

    try:
        item_ids, conversation_ids = select_resolved_item_conversations(store, threshold_hours, now)
    except Exception as e:
        logger.error("Resolved-item selection failed: %s", e)
        return PolicyResult(failed=1)

    if not conversation_ids:
        logger.info("✅ No conversations of resolved items to clean up")
        return PolicyResult(items=item_ids)

    purged = CascadingDeleter(store, batch_limit).purge(conversation_ids)
    return PolicyResult(
        cleaned=purged.conversations_deleted,
        conversations_deleted=purged.conversations_deleted,
        messages_deleted=purged.messages_deleted,
        failed=purged.failed,
        items=item_ids,
    )


def purge_stale_conversations(
    store: DocumentStore,
    threshold_days: int = 7,
    enabled: bool = True,
    batch_limit: int = BATCH_LIMIT,
    now: Optional[datetime] = None,
) -> PolicyResult:
    """Purge conversations created ``threshold_days`` ago, regardless of item status."""
    if not enabled:
        logger.info("Stale-conversation cleanup is disabled by configuration, no action taken")
        return PolicyResult(enabled=False)

    try:
        conversation_ids = select_stale_conversations(store, threshold_days, now)
    except Exception as e:
        logger.error("Stale-conversation selection failed: %s", e)
        return PolicyResult(failed=1)

    if not conversation_ids:
        logger.info("✅ No old conversations found for cleanup")
        return PolicyResult()

    purged = CascadingDeleter(store, batch_limit).purge(conversation_ids)
    return PolicyResult(
        cleaned=purged.conversations_deleted,
        conversations_deleted=purged.conversations_deleted,
        messages_deleted=purged.messages_deleted,
        failed=purged.failed,
    )


def run_cleanup(store: DocumentStore, config=None, now: Optional[datetime] = None) -> CleanupSummary:
    """
    Run both retention policies once. Idempotent, safe on any schedule.

    ``config`` is any object with the retention fields of
    ``lostfound.config.Settings``; defaults to the process settings.
    """
    if config is None:
        from lostfound.config import settings as config

    now = _now(now)
    logger.info("🚀 Starting full cleanup process...")

    found = purge_resolved_item_conversations(
        store,
        threshold_hours=config.found_item_threshold_hours,
        enabled=config.found_item_cleanup_enabled,
        batch_limit=config.cleanup_batch_limit,
        now=now,
    )
    stale = purge_stale_conversations(
        store,
        threshold_days=config.stale_conversation_threshold_days,
        enabled=config.stale_conversation_cleanup_enabled,
        batch_limit=config.cleanup_batch_limit,
        now=now,
    )

    summary = CleanupSummary(
        timestamp=now.isoformat(),
        found_items_cleanup=found,
        old_conversations_cleanup=stale,
        total_conversations_deleted=found.conversations_deleted + stale.conversations_deleted,
        total_messages_deleted=found.messages_deleted + stale.messages_deleted,
    )
    logger.info(
        "🎉 Full cleanup completed: %d conversations, %d messages deleted",
        summary.total_conversations_deleted, summary.total_messages_deleted,
    )
    return summary
