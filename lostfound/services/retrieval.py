"""
Lost & Found lifecycle engine: mark-retrieved cascade.

A participant confirms the item was handed over. The item is marked
found (``status``/``kind`` = found, ``foundDate`` = now) and the
conversation is purged with all its messages. ``foundDate`` written here
is what the resolved-item retention policy later reads.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from lostfound.schemas import ItemStatus, MarkRetrievedResult, RetrievalOutcome
from lostfound.services.cascade import BATCH_LIMIT, CascadingDeleter
from lostfound.services.normalizer import normalize_conversation
from lostfound.services.store import CONVERSATIONS, ITEMS, DocumentStore

logger = logging.getLogger(__name__)


def mark_retrieved(
    store: DocumentStore,
    conversation_id: str,
    user_id: str,
    batch_limit: int = BATCH_LIMIT,
    now: Optional[datetime] = None,
) -> MarkRetrievedResult:
    """
    Mark the conversation's item found and delete the conversation.

    Only a participant may do this. Store errors on the initial read
    propagate; everything after it is reported through the result.
    """
    now = now or datetime.now(timezone.utc)

    doc = store.get(CONVERSATIONS, conversation_id)
    if doc is None:
        return MarkRetrievedResult(conversation_id=conversation_id, outcome=RetrievalOutcome.NOT_FOUND)

    conversation = normalize_conversation(doc.data, doc.id)
    if not user_id or user_id not in conversation.participants:
        logger.warning("User %s is not a participant of conversation %s", user_id, conversation_id)
        return MarkRetrievedResult(
            conversation_id=conversation_id,
            outcome=RetrievalOutcome.FORBIDDEN,
            item_id=conversation.item_id,
        )

    result = MarkRetrievedResult(
        conversation_id=conversation_id,
        outcome=RetrievalOutcome.RETRIEVED,
        item_id=conversation.item_id,
    )

    if conversation.item_id:
        try:
            if store.get(ITEMS, conversation.item_id) is None:
                logger.warning(
                    "Item %s of conversation %s no longer exists, nothing to mark",
                    conversation.item_id, conversation_id,
                )
            else:
                store.set(
                    ITEMS,
                    conversation.item_id,
                    {
                        "status": ItemStatus.FOUND.value,
                        "kind": ItemStatus.FOUND.value,
                        "foundDate": now,
                    },
                    merge=True,
                )
                result.item_updated = True
        except Exception as e:
            logger.error("Marking item %s found failed: %s", conversation.item_id, e)
            result.outcome = RetrievalOutcome.FAILED
            return result

    purged = CascadingDeleter(store, batch_limit).purge([conversation_id])
    result.messages_deleted = purged.messages_deleted
    if purged.failed or not purged.conversations_deleted:
        # item stays found; the resolved-item policy picks the conversation up later
        result.outcome = RetrievalOutcome.FAILED
        return result

    logger.info(
        "📦 Item %s retrieved, conversation %s and %d message(s) deleted",
        conversation.item_id, conversation_id, purged.messages_deleted,
    )
    return result
