"""
Document store port.

The engines only talk to the store through four primitives:
query-by-filter, get-by-id, set/merge (plus add with a generated id)
and batched delete. ``services.firebase.FirestoreStore`` is the
production adapter; tests substitute an in-memory double.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

# Collection names used by the deployed app
ITEMS = "items"
PREFERENCES = "notificationPreferences"
NOTIFICATIONS = "notifications"
CONVERSATIONS = "conversations"
MESSAGES = "messages"


class TransientStoreError(Exception):
    """A query or write against the store failed.

    Never retried in-line; the next scheduled run picks the work up again.
    """

    def __init__(self, message: str, collection: str = "", doc_id: str = ""):
        super().__init__(message)
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any


def where(field_path: str, op: str, value: Any) -> Filter:
    return Filter(field_path, op, value)


@dataclass
class Document:
    id: str
    data: dict = field(default_factory=dict)


class DeleteBatch(Protocol):
    """An atomic group of deletes. Nothing is applied until ``commit``."""

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def commit(self) -> None:
        ...

    def __len__(self) -> int:
        ...


class DocumentStore(Protocol):
    def query(self, collection: str, filters: Iterable[Filter] = ()) -> list[Document]:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def batch(self) -> DeleteBatch:
        ...
