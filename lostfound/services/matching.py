"""
Lost & Found lifecycle engine: notification fan-out matcher.

On every new item, each subscriber preference (except the owner's) is
checked for two independent signals:

- category: the item's category is one of the preference's categories
  (exact, case-sensitive)
- keyword: any preference keyword is a case-insensitive substring of
  ``title + " " + description``

Either signal produces exactly one notification for that subscriber.
Writes are isolated per subscriber: one failed write is logged and the
scan carries on. Fan-out never fails the item-creation path; see
``NotificationFanout``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from lostfound.schemas import (
    CanonicalItem,
    MatchDecision,
    NotificationPreference,
    NotificationWriteResult,
)
from lostfound.services.normalizer import normalize_item, normalize_preference
from lostfound.services.store import NOTIFICATIONS, PREFERENCES, DocumentStore

logger = logging.getLogger(__name__)


def evaluate_preference(
    item: CanonicalItem, preference: NotificationPreference
) -> Optional[MatchDecision]:
    """Binary match of one preference against one item. None means no notification."""
    if not preference.user_id:
        return None
    if item.owner_id and preference.user_id == item.owner_id:
        return None

    category = item.category if item.category and item.category in preference.categories else None

    text = item.search_text
    keyword = next((k for k in preference.keywords if k and k.lower() in text), None)

    if not category and not keyword:
        return None
    return MatchDecision(user_id=preference.user_id, category=category, keyword=keyword)


def build_notification(item: CanonicalItem, decision: MatchDecision, now: datetime) -> dict:
    """Notification document in the shape the read surface expects."""
    return {
        "userId": decision.user_id,
        "itemId": item.id,
        "type": item.status,
        "matchReason": decision.reason,
        "title": f"New {item.status} item matches your interests",
        "message": f"{item.title} - {decision.reason}",
        "itemData": {
            "title": item.title,
            "category": item.category,
            "location": item.location,
            "imageUrl": item.image_url,
        },
        "read": False,
        "createdAt": now.isoformat(),
    }


def match_and_notify(
    store: DocumentStore,
    item: CanonicalItem,
    preferences: Iterable[NotificationPreference],
    now: Optional[datetime] = None,
) -> list[NotificationWriteResult]:
    """
    Evaluate every preference against ``item`` and write one notification
    per match. Returns one result per matched subscriber, failed writes
    included (``ok=False``).
    """
    now = now or datetime.now(timezone.utc)
    results: list[NotificationWriteResult] = []
    notified: set[str] = set()

    for preference in preferences:
        decision = evaluate_preference(item, preference)
        if decision is None or decision.user_id in notified:
            continue
        notified.add(decision.user_id)

        result = NotificationWriteResult(
            user_id=decision.user_id, item_id=item.id, match_reason=decision.reason
        )
        try:
            result.notification_id = store.add(NOTIFICATIONS, build_notification(item, decision, now))
        except Exception as e:
            logger.error(
                "Notification write for user %s (item %s) failed: %s",
                decision.user_id, item.id, e,
            )
            result.ok = False
            result.error = str(e)
        results.append(result)

    sent = sum(1 for r in results if r.ok)
    logger.info(
        "🔔 Item %s matched %d subscriber(s), %d notification(s) written",
        item.id, len(results), sent,
    )
    return results


def load_preferences(store: DocumentStore) -> list[NotificationPreference]:
    """All subscriber preferences, normalized."""
    return [normalize_preference(doc.data, doc.id) for doc in store.query(PREFERENCES)]


def notify_item_created(
    store: DocumentStore, raw_item: dict, doc_id: Optional[str] = None
) -> list[NotificationWriteResult]:
    """
    ItemCreated subscriber. Never raises: any failure is logged and an
    empty result returned, so the caller's item creation is unaffected.
    """
    try:
        item = normalize_item(raw_item, doc_id)
        if not item.id:
            logger.warning("Item without id passed to fan-out, skipping")
            return []
        preferences = load_preferences(store)
        return match_and_notify(store, item, preferences)
    except Exception as e:
        logger.error("Notification fan-out for item %s failed: %s", doc_id, e)
        return []


class NotificationFanout:
    """
    Non-blocking dispatcher for ``notify_item_created``.

    ``dispatch`` returns immediately; the work runs in a worker thread and
    its failures are logged only, never surfaced to the caller.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._dispatched = 0
        self._failed = 0

    def dispatch(
        self, store: DocumentStore, raw_item: dict, doc_id: Optional[str] = None
    ) -> asyncio.Task:
        """Schedule fan-out for one item. Must be called from a running event loop."""
        task = asyncio.create_task(
            asyncio.to_thread(notify_item_created, store, raw_item, doc_id)
        )
        self._tasks.add(task)
        self._dispatched += 1
        task.add_done_callback(self._on_done)
        logger.debug("Fan-out for item %s dispatched (%d in flight)", doc_id, len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Notification fan-out task cancelled")
            return
        exc = task.exception()
        if exc is not None:
            self._failed += 1
            logger.error("Notification fan-out task failed: %s", exc)

    @property
    def pending(self) -> int:
        """Number of fan-out tasks still running."""
        return len(self._tasks)

    @property
    def dispatched(self) -> int:
        return self._dispatched

    @property
    def failed(self) -> int:
        return self._failed

    async def drain(self) -> None:
        """Wait for all in-flight fan-outs. Used on shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Process-wide dispatcher used by the HTTP trigger and drained on shutdown
notification_fanout = NotificationFanout()
