from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from .base import CamelModel


class PrayerName(str, Enum):
    FAJR = "fajr"
    DHUHR = "dhuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"


# Canonical daily order
PRAYER_ORDER: List[str] = [p.value for p in PrayerName]


def normalize_prayer_name(name: str) -> Optional[str]:
    """Return the canonical lowercase prayer name, or None if unknown."""
    key = (name or "").strip().lower()
    return key if key in PRAYER_ORDER else None


class PrayerStats(CamelModel):
    """Prayer statistics computed fresh for one request."""

    current_streak: int = 0
    # Fraction of required prayers completed over the trailing window
    completion_rate: float = 0.0
    today_completed: int = 0
    today_total: int = len(PRAYER_ORDER)
    # Per-prayer completion fraction over the trailing window
    prayer_consistency: Dict[str, float] = Field(default_factory=dict)
    struggling_prayers: List[str] = Field(default_factory=list)
    as_of: Optional[datetime] = None
    current_time: Optional[str] = None
    current_prayer_period: Optional[str] = None
    next_prayer_info: Optional[str] = None

    def consistent(self, threshold: float) -> Dict[str, bool]:
        return {name: rate >= threshold for name, rate in self.prayer_consistency.items()}


class PrayerRecordCreate(CamelModel):
    """Schema for logging a completed prayer."""

    user_id: str
    prayer_name: str
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("prayer_name")
    @classmethod
    def _canonical_name(cls, v: str) -> str:
        name = normalize_prayer_name(v)
        if name is None:
            raise ValueError(f"unknown prayer: {v!r}")
        return name


class PrayerRecordResponse(PrayerRecordCreate):
    id: str
    completed_at: datetime
