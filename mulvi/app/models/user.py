from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import CamelModel, TimestampedModel


class NotificationSettings(CamelModel):
    """Schema for notification preferences."""

    prayer_reminders: bool = True
    community_updates: bool = False
    achievement_notifications: bool = True
    reminder_timing: int = 10  # minutes before prayer


class UserProfile(TimestampedModel):
    """Persisted profile owned by the profile store; read-only to the engine."""

    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    theme_preference: Optional[str] = None
    prayer_method: Optional[str] = None
    location: Optional[str] = None
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    onboarding_completed: bool = False
    last_active_at: Optional[datetime] = None
    # Fields seeded from the completed onboarding state
    motivations: List[str] = Field(default_factory=list)
    intentions: List[str] = Field(default_factory=list)
    prayer_story: Optional[str] = None
    prayer_baseline: Optional[Dict[str, bool]] = None

    @classmethod
    def from_row(cls, row: Any) -> "UserProfile":
        seed = dict(getattr(row, "onboarding_json", None) or {})
        return cls(
            id=row.id,
            display_name=row.display_name,
            avatar_url=row.avatar_url,
            theme_preference=row.theme_preference,
            prayer_method=row.prayer_method,
            location=row.location,
            notification_settings=NotificationSettings(**(row.notification_settings or {})),
            onboarding_completed=bool(row.onboarding_completed),
            last_active_at=row.last_active_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
            motivations=list(seed.get("motivations") or []),
            intentions=list(seed.get("intentions") or []),
            prayer_story=seed.get("prayer_story"),
            prayer_baseline=seed.get("prayer_baseline"),
        )


class UserProfileCreate(CamelModel):
    """Schema for registering a profile with the store."""

    id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    prayer_method: Optional[str] = None
    location: Optional[str] = None
