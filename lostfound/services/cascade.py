"""
Lost & Found lifecycle engine: cascading conversation deleter.

Deletes conversations together with every message that references them.
The store enforces no referential integrity, so this is the only place
that keeps messages from outliving their conversation.

Deletes are staged into batched writes of at most ``batch_limit``
operations. Messages of a conversation are always staged before the
conversation record itself, so a conversation is only ever removed in
the same batch as (or a later batch than) its last messages. Atomicity
holds per committed batch only; a crash mid-run leaves the remainder for
the next run, which is safe because every delete is idempotent.

Messages written while a purge is running are missed by the first
message read. Once a conversation record is gone nothing can select
those messages again, so every deleted conversation gets a second
message sweep at the end of the run.
"""

import logging
from typing import Iterable, Optional

from lostfound.schemas import PurgeResult
from lostfound.services.store import (
    CONVERSATIONS,
    MESSAGES,
    DeleteBatch,
    DocumentStore,
    where,
)

logger = logging.getLogger(__name__)

# Firestore's maximum number of writes in one batch
BATCH_LIMIT = 500

# (collection, doc_id, conversation_id)
StagedDelete = tuple[str, str, str]


class CascadingDeleter:
    """Chunked, per-batch atomic purge of conversations and their messages."""

    def __init__(self, store: DocumentStore, batch_limit: int = BATCH_LIMIT):
        if batch_limit < 1:
            raise ValueError(f"batch_limit must be at least 1, got {batch_limit}")
        self.store = store
        self.batch_limit = batch_limit

    def purge(self, conversation_ids: Iterable[str]) -> PurgeResult:
        """
        Delete each conversation and all of its messages.

        A failure on one conversation (message query or batch commit) is
        logged and skipped; the result counts committed deletes only.
        """
        result = PurgeResult()
        batch: DeleteBatch = self.store.batch()
        staged: list[StagedDelete] = []
        deleted: list[str] = []
        seen: set[str] = set()

        for conversation_id in conversation_ids:
            if not conversation_id or conversation_id in seen:
                continue
            seen.add(conversation_id)

            try:
                messages = self._messages_of(conversation_id)
            except Exception as e:
                logger.error("Message lookup for conversation %s failed: %s", conversation_id, e)
                result.failed += 1
                continue

            ops = [(MESSAGES, m.id) for m in messages]
            ops.append((CONVERSATIONS, conversation_id))

            for collection, doc_id in ops:
                if len(staged) >= self.batch_limit:
                    failed_ids = self._commit(batch, staged, result, deleted)
                    batch, staged = self.store.batch(), []
                    if conversation_id in failed_ids:
                        # staging the rest would delete the conversation ahead
                        # of the messages that just failed to delete
                        break
                batch.delete(collection, doc_id)
                staged.append((collection, doc_id, conversation_id))

        if staged:
            self._commit(batch, staged, result, deleted)

        self._sweep_late_messages(deleted, result)

        logger.info(
            "🧹 Cascade purge: %d conversations, %d messages deleted (%d failed)",
            result.conversations_deleted, result.messages_deleted, result.failed,
        )
        return result

    def _messages_of(self, conversation_id: str):
        return self.store.query(MESSAGES, [where("conversationId", "==", conversation_id)])

    def _sweep_late_messages(self, conversation_ids: list[str], result: PurgeResult) -> None:
        """Delete messages that reference conversations removed in this run."""
        batch: DeleteBatch = self.store.batch()
        staged: list[StagedDelete] = []

        for conversation_id in conversation_ids:
            try:
                late = self._messages_of(conversation_id)
            except Exception as e:
                logger.error("Late-message sweep for conversation %s failed: %s", conversation_id, e)
                result.failed += 1
                continue
            if late:
                logger.warning(
                    "Conversation %s got %d message(s) during purge, deleting them",
                    conversation_id, len(late),
                )
            for message in late:
                if len(staged) >= self.batch_limit:
                    self._commit(batch, staged, result)
                    batch, staged = self.store.batch(), []
                batch.delete(MESSAGES, message.id)
                staged.append((MESSAGES, message.id, conversation_id))

        if staged:
            self._commit(batch, staged, result)

    def _commit(
        self,
        batch: DeleteBatch,
        staged: list[StagedDelete],
        result: PurgeResult,
        deleted: Optional[list[str]] = None,
    ) -> set[str]:
        """
        Commit ``batch`` and tally ``staged`` into ``result``. Conversations
        whose record was in the batch are appended to ``deleted``.

        Returns the ids of conversations that had deletes in a failed
        batch (empty on success).
        """
        try:
            batch.commit()
        except Exception as e:
            affected = list(dict.fromkeys(cid for _, _, cid in staged))
            logger.error(
                "Batch of %d deletes failed, conversations %s left for next run: %s",
                len(staged), ", ".join(affected), e,
            )
            result.failed += len(affected)
            return set(affected)

        for collection, _, conversation_id in staged:
            if collection == MESSAGES:
                result.messages_deleted += 1
            else:
                result.conversations_deleted += 1
                if deleted is not None:
                    deleted.append(conversation_id)
        logger.debug("Committed batch of %d deletes", len(staged))
        return set()
