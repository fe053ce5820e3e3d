"""
Ordered fallback lookups.

Claimed items have been recorded three different ways over the app's
life. Each way is a standalone strategy; ``first_non_empty`` tries them in
order and returns the first one that finds anything.
"""

import logging
from typing import Callable, Iterable, Optional

from lostfound.schemas import CanonicalItem
from lostfound.services.normalizer import normalize_item
from lostfound.services.store import ITEMS, Document, DocumentStore, where

logger = logging.getLogger(__name__)

LookupStrategy = Callable[..., list[Document]]


def first_non_empty(
    strategies: Iterable[tuple[str, LookupStrategy]], *args
) -> tuple[Optional[str], list[Document]]:
    """
    Call each ``(name, strategy)`` with ``*args`` until one returns a
    non-empty list. A strategy that raises counts as empty.

    Returns (name of the strategy that matched, its documents), or
    (None, []) when every strategy came up empty.
    """
    for name, strategy in strategies:
        try:
            docs = strategy(*args)
        except Exception as e:
            logger.warning("Lookup strategy %s failed: %s", name, e)
            continue
        if docs:
            return name, docs
    return None, []


# ── Claimed-item strategies ─────────────────────────────

def claimed_by_user_id(store: DocumentStore, user_id: str, email: Optional[str] = None) -> list[Document]:
    return store.query(ITEMS, [where("claimedBy", "==", user_id)])


def claimed_by_user_ref(store: DocumentStore, user_id: str, email: Optional[str] = None) -> list[Document]:
    return store.query(ITEMS, [where("claimedBy.uid", "==", user_id)])


def claimed_by_email(store: DocumentStore, user_id: str, email: Optional[str] = None) -> list[Document]:
    if not email:
        return []
    return store.query(ITEMS, [where("claimedByEmail", "==", email.strip().lower())])


CLAIMED_ITEM_STRATEGIES: list[tuple[str, LookupStrategy]] = [
    ("claimedBy", claimed_by_user_id),
    ("claimedBy.uid", claimed_by_user_ref),
    ("claimedByEmail", claimed_by_email),
]


def find_claimed_items(
    store: DocumentStore, user_id: str, email: Optional[str] = None
) -> tuple[Optional[str], list[CanonicalItem]]:
    """Items claimed by ``user_id``, via the first strategy that finds any."""
    name, docs = first_non_empty(CLAIMED_ITEM_STRATEGIES, store, user_id, email)
    return name, [normalize_item(doc.data, doc.id) for doc in docs]
