"""
Tests for the Firestore bridge: init and the DocumentStore adapter.
"""

from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as google_exceptions

from lostfound.services.firebase import FirestoreDeleteBatch, FirestoreStore
from lostfound.services.store import TransientStoreError, where


def _snap(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


# ── Init ────────────────────────────────────────────────


class TestFirebaseInit:
    def test_init_no_cred_path(self):
        """Without cred path, init should return False."""
        import lostfound.services.firebase as fb_mod

        old = fb_mod._initialized
        fb_mod._initialized = False

        assert fb_mod.init_firebase(cred_path="") is False
        assert fb_mod.get_store() is None

        fb_mod._initialized = old

    def test_init_already_initialized(self):
        import lostfound.services.firebase as fb_mod

        old = fb_mod._initialized
        fb_mod._initialized = True

        assert fb_mod.init_firebase(cred_path="/fake.json") is True

        fb_mod._initialized = old

    def test_init_success(self):
        import lostfound.services.firebase as fb_mod

        old_init, old_store = fb_mod._initialized, fb_mod._store
        fb_mod._initialized = False
        with patch.object(fb_mod, "credentials") as creds, \
             patch.object(fb_mod.firebase_admin, "initialize_app") as init_app, \
             patch.object(fb_mod, "firestore") as fs:
            assert fb_mod.init_firebase(cred_path="/key.json", project_id="campus") is True
            creds.Certificate.assert_called_once_with("/key.json")
            init_app.assert_called_once_with(creds.Certificate.return_value, {"projectId": "campus"})
            assert isinstance(fb_mod.get_store(), FirestoreStore)
            assert fb_mod.is_initialized() is True

        fb_mod._initialized, fb_mod._store = old_init, old_store

    def test_init_failure_returns_false(self):
        import lostfound.services.firebase as fb_mod

        old = fb_mod._initialized
        fb_mod._initialized = False
        with patch.object(fb_mod, "credentials") as creds:
            creds.Certificate.side_effect = FileNotFoundError("/missing.json")
            assert fb_mod.init_firebase(cred_path="/missing.json") is False
            assert fb_mod.is_initialized() is False

        fb_mod._initialized = old


# ── FirestoreStore ──────────────────────────────────────


class TestFirestoreStore:
    def test_query_applies_filters(self):
        client = MagicMock()
        col = client.collection.return_value
        col.where.return_value.where.return_value.stream.return_value = [_snap("c1", {"itemId": "i1"})]

        docs = FirestoreStore(client).query(
            "conversations", [where("itemId", "==", "i1"), where("createdAt", "<=", 5)]
        )

        client.collection.assert_called_with("conversations")
        assert col.where.call_count == 1
        assert [(d.id, d.data) for d in docs] == [("c1", {"itemId": "i1"})]

    def test_query_error_wrapped(self):
        client = MagicMock()
        client.collection.return_value.stream.side_effect = google_exceptions.ServiceUnavailable("down")

        with pytest.raises(TransientStoreError) as exc:
            FirestoreStore(client).query("items")
        assert exc.value.collection == "items"

    def test_get_missing(self):
        client = MagicMock()
        client.collection.return_value.document.return_value.get.return_value = _snap("i1", None, exists=False)
        assert FirestoreStore(client).get("items", "i1") is None

    def test_get_existing(self):
        client = MagicMock()
        client.collection.return_value.document.return_value.get.return_value = _snap("i1", {"title": "x"})
        doc = FirestoreStore(client).get("items", "i1")
        assert doc.id == "i1"
        assert doc.data == {"title": "x"}

    def test_add_returns_new_id(self):
        client = MagicMock()
        ref = MagicMock()
        ref.id = "n1"
        client.collection.return_value.add.return_value = (None, ref)
        assert FirestoreStore(client).add("notifications", {"userId": "u2"}) == "n1"

    def test_set_error_wrapped(self):
        client = MagicMock()
        client.collection.return_value.document.return_value.set.side_effect = (
            google_exceptions.PermissionDenied("nope")
        )
        with pytest.raises(TransientStoreError) as exc:
            FirestoreStore(client).set("items", "i1", {"claimed": True}, merge=True)
        assert exc.value.doc_id == "i1"


class TestFirestoreDeleteBatch:
    def test_delete_and_commit(self):
        client = MagicMock()
        batch = FirestoreDeleteBatch(client)
        batch.delete("messages", "m1")
        batch.delete("conversations", "c1")

        assert len(batch) == 2
        batch.commit()
        client.batch.return_value.commit.assert_called_once()
        assert client.batch.return_value.delete.call_count == 2

    def test_empty_commit_is_noop(self):
        client = MagicMock()
        FirestoreDeleteBatch(client).commit()
        client.batch.return_value.commit.assert_not_called()

    def test_commit_error_wrapped(self):
        client = MagicMock()
        client.batch.return_value.commit.side_effect = google_exceptions.Aborted("contention")
        batch = FirestoreDeleteBatch(client)
        batch.delete("conversations", "c1")
        with pytest.raises(TransientStoreError):
            batch.commit()
