"""
Shared test fixtures: in-memory document store, sample records, API client.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from lostfound.config import Settings
from lostfound.services.store import (
    CONVERSATIONS,
    ITEMS,
    MESSAGES,
    PREFERENCES,
    Document,
    Filter,
    TransientStoreError,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

_MISSING = object()


# ── In-memory document store ────────────────────────────

def _resolve(data: dict, path: str):
    value = data
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _matches(data: dict, f: Filter) -> bool:
    value = _resolve(data, f.field)
    if value is _MISSING:
        return False
    try:
        if f.op == "==":
            return value == f.value
        if f.op == "<=":
            return value <= f.value
        if f.op == "<":
            return value < f.value
        if f.op == ">=":
            return value >= f.value
        if f.op == ">":
            return value > f.value
        if f.op == "array-contains":
            return isinstance(value, list) and f.value in value
        if f.op == "in":
            return value in f.value
    except TypeError:
        return False
    raise ValueError(f"unsupported op {f.op}")


class FakeBatch:
    def __init__(self, store: "FakeStore"):
        self._store = store
        self.ops: list[tuple[str, str]] = []

    def delete(self, collection: str, doc_id: str) -> None:
        self.ops.append((collection, doc_id))

    def commit(self) -> None:
        if not self.ops:
            return
        self._store.commit_attempts += 1
        if len(self.ops) > self._store.max_batch_ops:
            raise TransientStoreError(f"batch of {len(self.ops)} exceeds {self._store.max_batch_ops}")
        if self._store.fail_commit_when and self._store.fail_commit_when(self.ops):
            raise TransientStoreError("injected commit failure")
        for collection, doc_id in self.ops:
            self._store.collections[collection].pop(doc_id, None)
        self._store.committed_batches.append(list(self.ops))

    def __len__(self) -> int:
        return len(self.ops)


class FakeStore:
    """Dict-backed stand-in for Firestore with failure injection."""

    def __init__(self, max_batch_ops: int = 500):
        self.collections: dict[str, dict[str, dict]] = defaultdict(dict)
        self.max_batch_ops = max_batch_ops
        self.committed_batches: list[list[tuple[str, str]]] = []
        self.commit_attempts = 0
        self.fail_queries: set[tuple[str, str, object]] = set()
        self.fail_collections: set[str] = set()
        self.fail_adds_for: set[str] = set()
        self.fail_commit_when: Optional[Callable[[list], bool]] = None
        self._seq = 0

    # helpers
    def put(self, collection: str, doc_id: str, data: dict) -> None:
        self.collections[collection][doc_id] = dict(data)

    def ids(self, collection: str) -> set[str]:
        return set(self.collections[collection])

    # DocumentStore primitives
    def query(self, collection: str, filters: Iterable[Filter] = ()) -> list[Document]:
        filters = list(filters)
        if collection in self.fail_collections:
            raise TransientStoreError(f"query {collection} unavailable", collection)
        for f in filters:
            if (collection, f.field, f.value) in self.fail_queries:
                raise TransientStoreError(f"query {collection} {f.field}={f.value} failed", collection)
        return [
            Document(doc_id, dict(data))
            for doc_id, data in self.collections[collection].items()
            if all(_matches(data, f) for f in filters)
        ]

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        if collection in self.fail_collections:
            raise TransientStoreError(f"get {collection}/{doc_id} failed", collection, doc_id)
        data = self.collections[collection].get(doc_id)
        return Document(doc_id, dict(data)) if data is not None else None

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        if merge and doc_id in self.collections[collection]:
            self.collections[collection][doc_id].update(data)
        else:
            self.collections[collection][doc_id] = dict(data)

    def add(self, collection: str, data: dict) -> str:
        if data.get("userId") in self.fail_adds_for:
            raise TransientStoreError(f"add to {collection} failed", collection)
        self._seq += 1
        doc_id = f"{collection}-{self._seq}"
        self.collections[collection][doc_id] = dict(data)
        return doc_id

    def batch(self) -> FakeBatch:
        return FakeBatch(self)


# ── Fixtures ────────────────────────────────────────────

@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def cleanup_settings():
    return Settings(
        _env_file=None,
        found_item_cleanup_enabled=False,
        found_item_threshold_hours=24,
        stale_conversation_cleanup_enabled=True,
        stale_conversation_threshold_days=7,
        cleanup_batch_limit=500,
        cleanup_interval_seconds=0,
    )


def add_conversation(
    store: FakeStore,
    conversation_id: str,
    created_at: datetime,
    messages: int = 0,
    item_id: str = "item-1",
) -> None:
    store.put(CONVERSATIONS, conversation_id, {
        "itemId": item_id,
        "participants": ["u1", "u2"],
        "lastMessage": "",
        "lastMessageTime": created_at,
        "createdAt": created_at,
    })
    for n in range(messages):
        store.put(MESSAGES, f"{conversation_id}-m{n}", {
            "conversationId": conversation_id,
            "senderId": "u1" if n % 2 else "u2",
            "text": f"message {n}",
            "timestamp": created_at + timedelta(minutes=n),
        })


def add_item(store: FakeStore, item_id: str, **data) -> None:
    doc = {
        "title": "Lost wallet",
        "description": "black leather",
        "category": "wallets",
        "status": "lost",
        "ownerId": "u1",
    }
    doc.update(data)
    store.put(ITEMS, item_id, doc)


def add_preference(store: FakeStore, user_id: str, categories=(), keywords=(), email_enabled=False) -> None:
    store.put(PREFERENCES, user_id, {
        "categories": list(categories),
        "keywords": list(keywords),
        "emailEnabled": email_enabled,
    })


@pytest_asyncio.fixture()
async def client(store):
    """FastAPI test client with the fake store injected."""
    from lostfound.main import app
    from lostfound.routes import get_document_store

    app.dependency_overrides[get_document_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
