"""
Lost & Found lifecycle engine: Firestore bridge.

Initializes the Firebase Admin SDK and exposes Firestore through the
``DocumentStore`` primitives the engines use. Every client error is
re-raised as ``TransientStoreError`` carrying the collection/doc id.
"""

import logging
from typing import Iterable, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from lostfound.services.store import Document, Filter, TransientStoreError

logger = logging.getLogger(__name__)

_initialized = False
_store: Optional["FirestoreStore"] = None


def init_firebase(cred_path: str = "", project_id: str = "") -> bool:
    """
    Initialize Firebase Admin SDK and the module's Firestore store.

    Args:
        cred_path: Path to the service account JSON key file.
        project_id: Optional explicit project id.

    Returns True if init succeeded, False otherwise.
    """
    global _initialized, _store

    if _initialized:
        return True

    if not cred_path:
        logger.warning("FIREBASE_CRED_PATH not set, Firestore store disabled")
        return False

    try:
        cred = credentials.Certificate(cred_path)
        options = {"projectId": project_id} if project_id else None
        firebase_admin.initialize_app(cred, options)
        _store = FirestoreStore(firestore.client())
        _initialized = True
        logger.info("✅ Firebase Admin SDK initialized")
        return True
    except Exception as e:
        logger.error(f"Firebase init failed: {e}")
        return False


def is_initialized() -> bool:
    """Check if Firebase Admin SDK is initialized."""
    return _initialized


def get_store() -> Optional["FirestoreStore"]:
    """The Firestore-backed store, or None when Firebase is not configured."""
    return _store if _initialized else None


class FirestoreDeleteBatch:
    """Wraps a Firestore ``WriteBatch``; only deletes are staged through it."""

    def __init__(self, client):
        self._client = client
        self._batch = client.batch()
        self._size = 0

    def delete(self, collection: str, doc_id: str) -> None:
        self._batch.delete(self._client.collection(collection).document(doc_id))
        self._size += 1

    def commit(self) -> None:
        if not self._size:
            return
        try:
            self._batch.commit()
        except google_exceptions.GoogleAPIError as e:
            raise TransientStoreError(f"batch commit of {self._size} deletes failed: {e}") from e

    def __len__(self) -> int:
        return self._size


class FirestoreStore:
    """Document store primitives on top of a ``google.cloud.firestore.Client``."""

    def __init__(self, client):
        self._client = client

    def query(self, collection: str, filters: Iterable[Filter] = ()) -> list[Document]:
        try:
            q = self._client.collection(collection)
            for f in filters:
                q = q.where(filter=FieldFilter(f.field, f.op, f.value))
            return [Document(snap.id, snap.to_dict() or {}) for snap in q.stream()]
        except google_exceptions.GoogleAPIError as e:
            raise TransientStoreError(f"query {collection} failed: {e}", collection) from e

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            snap = self._client.collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPIError as e:
            raise TransientStoreError(f"get {collection}/{doc_id} failed: {e}", collection, doc_id) from e
        if not snap.exists:
            return None
        return Document(snap.id, snap.to_dict() or {})

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        try:
            self._client.collection(collection).document(doc_id).set(data, merge=merge)
        except google_exceptions.GoogleAPIError as e:
            raise TransientStoreError(f"set {collection}/{doc_id} failed: {e}", collection, doc_id) from e

    def add(self, collection: str, data: dict) -> str:
        try:
            _, ref = self._client.collection(collection).add(data)
        except google_exceptions.GoogleAPIError as e:
            raise TransientStoreError(f"add to {collection} failed: {e}", collection) from e
        return ref.id

    def batch(self) -> FirestoreDeleteBatch:
        return FirestoreDeleteBatch(self._client)
