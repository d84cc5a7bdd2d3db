import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .base import CamelModel


class MessageRole(str, Enum):
    """Enum for message roles in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def coerce(cls, raw: str) -> "MessageRole":
        """Map a client role string onto a known role.

        Exact matches win, then the leading word (`"user njm"` is a user turn);
        anything else is treated as a user turn.
        """
        text = raw.strip().lower()
        words = text.split()
        for candidate in (text, words[0] if words else ""):
            try:
                return cls(candidate)
            except ValueError:
                continue
        return cls.USER


class ConversationTurn(BaseModel):
    """One entry of the caller-supplied conversation history."""

    role: MessageRole
    content: str

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


DEFAULT_USER_NAME = "friend"
DEFAULT_PRAYER_METHOD = "ISNA"
DEFAULT_THEME = "serene"
DEFAULT_CURRENT_TIME = "unknown"
DEFAULT_PRAYER_PERIOD = "unknown period"
DEFAULT_NEXT_PRAYER = "upcoming"


class UserContext(CamelModel):
    """Flat personalization context for a single prompt compilation.

    Every field has a default, so any subset of the wire shape validates.
    Nulls and blank strings fall back to the default as well.
    """

    user_name: str = DEFAULT_USER_NAME
    account_age: int = 0
    prayer_method: str = DEFAULT_PRAYER_METHOD
    user_theme: str = DEFAULT_THEME

    # Absent when empty/None
    motivations: List[str] = Field(default_factory=list)
    intentions: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    prayer_story: Optional[str] = None

    current_streak: int = 0
    completion_rate: float = 0.0
    today_completed: int = 0
    today_total: int = 0
    current_time: str = DEFAULT_CURRENT_TIME
    current_prayer_period: str = DEFAULT_PRAYER_PERIOD
    next_prayer_info: str = DEFAULT_NEXT_PRAYER
    struggling_prayers: List[str] = Field(default_factory=list)
    prayer_baseline: Optional[Dict[str, bool]] = None

    @classmethod
    def from_untrusted(cls, data: Any) -> "UserContext":
        """Validate client-supplied context, defaulting any field that fails."""
        if not isinstance(data, dict):
            return cls()
        data = dict(data)
        for _ in range(len(data) + 1):
            try:
                return cls.model_validate(data)
            except ValidationError as e:
                locs = {err["loc"][0] for err in e.errors() if err.get("loc")}
                bad = set()
                for name, info in cls.model_fields.items():
                    if name in locs or info.alias in locs:
                        bad.update({name, info.alias})
                bad &= set(data)
                if not bad:
                    break
                for key in bad:
                    data.pop(key)
        return cls()

    @model_validator(mode="before")
    @classmethod
    def _drop_blanks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            out[key] = value
        return out

    @field_validator("motivations", "intentions", "goals", "struggling_prayers")
    @classmethod
    def _clean_list(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for item in v:
            item = str(item).strip()
            if item and item not in seen:
                seen.append(item)
        return seen

    @field_validator("completion_rate")
    @classmethod
    def _clamp_rate(cls, v: float) -> float:
        v = float(v)
        if not math.isfinite(v):
            return 0.0
        return min(max(v, 0.0), 1.0)

    @field_validator("account_age", "current_streak", "today_completed", "today_total")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        return max(int(v), 0)

    @field_validator("prayer_baseline")
    @classmethod
    def _empty_baseline_is_absent(cls, v: Optional[Dict[str, bool]]) -> Optional[Dict[str, bool]]:
        return v or None
