"""
Lost & Found lifecycle engine: record normalization.

Stored documents have drifted over time (``type`` vs ``category``,
``status`` vs ``kind``, three spellings of the image URL, Firestore
timestamps next to ISO strings and epoch millis). Everything below turns
a raw document into one canonical shape. None of these functions raise:
a malformed document comes back with empty/default fields.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from lostfound.schemas import (
    CanonicalItem,
    Conversation,
    ItemStatus,
    Message,
    NotificationPreference,
)

logger = logging.getLogger(__name__)

DATE_FIELDS = ("date", "createdAt", "created_at", "timestamp", "dateCreated")


# ── Primitive coercion ──────────────────────────────────

def _text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def _first(data: dict, *keys: str) -> Any:
    """First truthy value among ``keys``, in order."""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _ref_id(value: Any) -> Optional[str]:
    """User reference as an id: plain string, {"id"/"uid": ...} or a DocumentReference."""
    if not value:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return _text(value.get("id") or value.get("uid")) or None
    ref_id = getattr(value, "id", None)
    if isinstance(ref_id, str) and ref_id:
        return ref_id
    return None


def _string_list(value: Any) -> list[str]:
    """Keywords/categories: list, set, tuple or comma-separated string. Order kept, blanks and dupes dropped."""
    if isinstance(value, str):
        raw: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        raw = value
    else:
        return []
    out: list[str] = []
    for entry in raw:
        text = _text(entry)
        if text and text not in out:
            out.append(text)
    return out


# ── Timestamps ──────────────────────────────────────────

def _from_seconds(value: Any) -> Optional[datetime]:
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
    else:
        seconds = getattr(value, "seconds", None)
        nanos = getattr(value, "nanos", getattr(value, "nanoseconds", 0)) or 0
    if seconds is None or isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if not isinstance(nanos, (int, float)):
        nanos = 0
    return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)


def _from_native(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    to_datetime = (
        getattr(value, "to_datetime", None)
        or getattr(value, "ToDatetime", None)
        or getattr(value, "toDate", None)
    )
    if callable(to_datetime):
        return _from_native(to_datetime())
    return None


def _from_iso(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _from_native(datetime.fromisoformat(text))


def _from_epoch_ms(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


_TIMESTAMP_PARSERS = (_from_seconds, _from_native, _from_iso, _from_epoch_ms)


def normalize_timestamp(value: Any) -> Optional[datetime]:
    """
    Resolve any stored timestamp shape to an aware UTC datetime.

    Tried in order: seconds-based timestamp object, native date value,
    ISO-8601 string, epoch milliseconds. First successful parse wins.
    """
    if value is None or isinstance(value, bool):
        return None
    for parser in _TIMESTAMP_PARSERS:
        try:
            parsed = parser(value)
        except (TypeError, ValueError, OverflowError, OSError):
            continue
        if parsed is not None:
            return parsed
    return None


def extract_date(data: dict, fields: Iterable[str] = DATE_FIELDS) -> Optional[datetime]:
    """First field among ``fields`` that holds a parseable timestamp."""
    if not isinstance(data, dict):
        return None
    for name in fields:
        if data.get(name):
            parsed = normalize_timestamp(data[name])
            if parsed:
                return parsed
    return None


# ── Records ─────────────────────────────────────────────

def _location(value: Any) -> str:
    if isinstance(value, dict):
        return _text(value.get("address") or value.get("name"))
    return _text(value)


def normalize_item(raw: Any, doc_id: Optional[str] = None) -> CanonicalItem:
    """Canonical item from a raw ``items`` document."""
    try:
        data = raw if isinstance(raw, dict) else {}
        status = _text(_first(data, "status", "kind")).lower() or ItemStatus.LOST.value
        claimed_by = data.get("claimedBy")
        return CanonicalItem(
            id=_text(doc_id) or _text(data.get("id")),
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            category=_text(_first(data, "type", "category")),
            status=status,
            found_at=extract_date(data, ("foundAt", "foundDate")) if status == ItemStatus.FOUND.value else None,
            owner_id=_ref_id(_first(data, "ownerId", "reportedBy", "userId", "user", "postedBy")),
            image_url=_text(_first(data, "imageURL", "imageUrl", "image")),
            location=_location(data.get("location")),
            date=extract_date(data),
            claimed=bool(data.get("claimed")),
            claimed_at=normalize_timestamp(data.get("claimedAt")),
            claimed_by=_ref_id(claimed_by),
        )
    except Exception as e:
        logger.debug("normalize_item fell back to defaults for %s: %s", doc_id, e)
        return CanonicalItem(id=_text(doc_id))


def normalize_preference(raw: Any, user_id: Optional[str] = None) -> NotificationPreference:
    """Canonical preference; the document id is the subscriber's user id."""
    try:
        data = raw if isinstance(raw, dict) else {}
        return NotificationPreference(
            user_id=_text(user_id) or _text(data.get("userId")),
            keywords=_string_list(data.get("keywords")),
            categories=_string_list(data.get("categories")),
            email_enabled=bool(data.get("emailEnabled")),
        )
    except Exception as e:
        logger.debug("normalize_preference fell back to defaults for %s: %s", user_id, e)
        return NotificationPreference(user_id=_text(user_id))


def normalize_conversation(raw: Any, doc_id: Optional[str] = None) -> Conversation:
    try:
        data = raw if isinstance(raw, dict) else {}
        participants = data.get("participants")
        return Conversation(
            id=_text(doc_id) or _text(data.get("id")),
            item_id=_text(data.get("itemId")) or None,
            participants=_string_list(participants) if isinstance(participants, (list, tuple)) else [],
            last_message=_text(data.get("lastMessage")),
            last_message_at=extract_date(data, ("lastMessageAt", "lastMessageTime")),
            created_at=extract_date(data, ("createdAt", "created_at", "date", "timestamp")),
        )
    except Exception as e:
        logger.debug("normalize_conversation fell back to defaults for %s: %s", doc_id, e)
        return Conversation(id=_text(doc_id))


def normalize_message(raw: Any, doc_id: Optional[str] = None) -> Message:
    try:
        data = raw if isinstance(raw, dict) else {}
        return Message(
            id=_text(doc_id) or _text(data.get("id")),
            conversation_id=_text(data.get("conversationId")),
            sender_id=_text(data.get("senderId")),
            text=_text(data.get("text")),
            timestamp=normalize_timestamp(data.get("timestamp")),
        )
    except Exception as e:
        logger.debug("normalize_message fell back to defaults for %s: %s", doc_id, e)
        return Message(id=_text(doc_id))
