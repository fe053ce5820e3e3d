"""
Lost & Found lifecycle engine: Pydantic models.

Canonical records produced by the normalizer, plus the result/summary
shapes returned by the matching and cleanup engines.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ItemStatus(str, Enum):
    LOST = "lost"
    FOUND = "found"


# ── Canonical records ───────────────────────────────────

class CanonicalItem(BaseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    category: str = ""
    status: str = ItemStatus.LOST.value
    found_at: datetime | None = None
    owner_id: str | None = None
    image_url: str = ""
    location: str = ""
    date: datetime | None = None
    claimed: bool = False
    claimed_at: datetime | None = None
    claimed_by: str | None = None

    @property
    def is_found(self) -> bool:
        return self.status == ItemStatus.FOUND.value

    @property
    def search_text(self) -> str:
        """Lower-cased text the keyword signal is matched against."""
        return f"{self.title} {self.description}".lower()


class NotificationPreference(BaseModel):
    user_id: str = ""
    keywords: list[str] = []
    categories: list[str] = []
    email_enabled: bool = False


class Conversation(BaseModel):
    id: str = ""
    item_id: str | None = None
    participants: list[str] = []
    last_message: str = ""
    last_message_at: datetime | None = None
    created_at: datetime | None = None


class Message(BaseModel):
    id: str = ""
    conversation_id: str = ""
    sender_id: str = ""
    text: str = ""
    timestamp: datetime | None = None


# ── Matching ────────────────────────────────────────────

class MatchDecision(BaseModel):
    user_id: str
    category: str | None = None
    keyword: str | None = None

    @property
    def reason(self) -> str:
        parts = []
        if self.category:
            parts.append(f"Category: {self.category}")
        if self.keyword:
            parts.append(f"Keyword: {self.keyword}")
        return ", ".join(parts)


class NotificationWriteResult(BaseModel):
    user_id: str
    item_id: str
    match_reason: str
    notification_id: str | None = None
    ok: bool = True
    error: str | None = None


# ── Cleanup ─────────────────────────────────────────────

class PurgeResult(BaseModel):
    conversations_deleted: int = Field(0, alias="conversationsDeleted")
    messages_deleted: int = Field(0, alias="messagesDeleted")
    failed: int = 0

    model_config = {"populate_by_name": True}


class PolicyResult(BaseModel):
    enabled: bool = True
    cleaned: int = 0
    conversations_deleted: int = Field(0, alias="conversationsDeleted")
    messages_deleted: int = Field(0, alias="messagesDeleted")
    failed: int = 0
    items: list[str] = []

    model_config = {"populate_by_name": True}


class RetrievalOutcome(str, Enum):
    RETRIEVED = "retrieved"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


class MarkRetrievedResult(BaseModel):
    conversation_id: str = Field(alias="conversationId")
    outcome: RetrievalOutcome
    item_id: str | None = Field(None, alias="itemId")
    item_updated: bool = Field(False, alias="itemUpdated")
    messages_deleted: int = Field(0, alias="messagesDeleted")

    model_config = {"populate_by_name": True}

    @property
    def success(self) -> bool:
        return self.outcome == RetrievalOutcome.RETRIEVED


class CleanupSummary(BaseModel):
    timestamp: str
    found_items_cleanup: PolicyResult = Field(alias="foundItemsCleanup")
    old_conversations_cleanup: PolicyResult = Field(alias="oldConversationsCleanup")
    total_conversations_deleted: int = Field(0, alias="totalConversationsDeleted")
    total_messages_deleted: int = Field(0, alias="totalMessagesDeleted")

    model_config = {"populate_by_name": True}

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# ── HTTP responses ──────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    store: str = "connected"
    pending_notifications: int = 0


class DispatchResponse(BaseModel):
    item_id: str = Field(alias="itemId")
    status: str = "dispatched"

    model_config = {"populate_by_name": True}


class ClaimedItemsResponse(BaseModel):
    user_id: str = Field(alias="userId")
    strategy: str | None = None
    items: list[CanonicalItem] = []

    model_config = {"populate_by_name": True}
