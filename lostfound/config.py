"""
Lost & Found lifecycle engine: configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Firebase
    firebase_cred_path: str = Field(
        default="", description="Path to Firebase service account key JSON"
    )
    firebase_project_id: str = Field(
        default="", description="Firestore project id (falls back to the key's project)"
    )

    # Notifications
    notifications_enabled: bool = Field(
        default=True, description="Run the fan-out matcher on item creation"
    )

    # Retention policies (each one independently toggleable)
    found_item_cleanup_enabled: bool = Field(
        default=False,
        description="Purge conversations of items marked found more than found_item_threshold_hours ago",
    )
    found_item_threshold_hours: int = Field(default=24, ge=0)
    stale_conversation_cleanup_enabled: bool = Field(
        default=True,
        description="Purge conversations created more than stale_conversation_threshold_days ago",
    )
    stale_conversation_threshold_days: int = Field(default=7, ge=0)

    # Cascading deleter; Firestore caps a batched write at 500 operations
    cleanup_batch_limit: int = Field(default=500, ge=1, le=500)

    # Janitor loop
    cleanup_interval_seconds: int = Field(
        default=3600, description="Seconds between cleanup runs (<= 0 disables the loop)"
    )
    cleanup_on_startup: bool = Field(default=True)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
