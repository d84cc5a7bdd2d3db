from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models.conversation import (
    DEFAULT_CURRENT_TIME,
    DEFAULT_NEXT_PRAYER,
    DEFAULT_PRAYER_METHOD,
    DEFAULT_PRAYER_PERIOD,
    DEFAULT_THEME,
    DEFAULT_USER_NAME,
    UserContext,
)
from ..models.prayer import PRAYER_ORDER, PrayerStats, normalize_prayer_name
from ..models.user import UserProfile
from ..policies.onboarding import OnboardingState

DEFAULT_STRUGGLING_THRESHOLD = 0.6


def _text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip() if isinstance(value, str) else None
    return value or None


def _as_utc(dt: datetime) -> datetime:
    # Naive timestamps from the store are UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _account_age(profile: Optional[UserProfile], reference: datetime) -> int:
    if profile is None or profile.created_at is None:
        return 0
    try:
        days = (_as_utc(reference) - _as_utc(profile.created_at)).days
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(days, 0)


def _struggling(stats: Optional[PrayerStats], threshold: float) -> List[str]:
    if stats is None:
        return []
    if stats.struggling_prayers:
        return list(stats.struggling_prayers)
    rates: Dict[str, float] = {}
    for name, rate in (stats.prayer_consistency or {}).items():
        key = normalize_prayer_name(name)
        if key is not None:
            rates[key] = rate
    return [name for name in PRAYER_ORDER if name in rates and rates[name] < threshold]


def aggregate(
    profile: Optional[UserProfile] = None,
    stats: Optional[PrayerStats] = None,
    onboarding: Optional[OnboardingState] = None,
    *,
    now: Optional[datetime] = None,
    struggling_threshold: float = DEFAULT_STRUGGLING_THRESHOLD,
) -> UserContext:
    """Merge profile, live stats and onboarding answers into a UserContext.

    Any of the three sources may be missing; each field falls back to its
    documented default independently. Account age is measured against ``now``,
    then ``stats.as_of``, then the wall clock.
    """
    reference = now or (stats.as_of if stats is not None else None) or datetime.now(timezone.utc)

    user_name = _text(profile.display_name) if profile else None
    prayer_method = (
        _text(profile.prayer_method) if profile else None
    ) or (
        _text(onboarding.qibla_settings.calculation_method) if onboarding else None
    )
    theme = (
        onboarding.theme.value if onboarding is not None and onboarding.theme is not None else None
    ) or (_text(profile.theme_preference) if profile else None)

    motivations = (list(onboarding.motivations) if onboarding else []) or (
        list(profile.motivations) if profile else []
    )
    intentions = (list(onboarding.intentions) if onboarding else []) or (
        list(profile.intentions) if profile else []
    )
    goals = list(onboarding.goals) if onboarding else []
    prayer_story = (_text(onboarding.prayer_story) if onboarding else None) or (
        _text(profile.prayer_story) if profile else None
    )
    baseline = (dict(onboarding.prayer_baseline) if onboarding else None) or (
        dict(profile.prayer_baseline) if profile and profile.prayer_baseline else None
    )

    fields = dict(
        user_name=user_name or DEFAULT_USER_NAME,
        account_age=_account_age(profile, reference),
        prayer_method=prayer_method or DEFAULT_PRAYER_METHOD,
        user_theme=theme or DEFAULT_THEME,
        motivations=motivations,
        intentions=intentions,
        goals=goals,
        prayer_story=prayer_story,
        prayer_baseline=baseline,
        struggling_prayers=_struggling(stats, struggling_threshold),
    )
    if stats is not None:
        fields.update(
            current_streak=stats.current_streak,
            completion_rate=stats.completion_rate,
            today_completed=stats.today_completed,
            today_total=stats.today_total,
            current_time=_text(stats.current_time) or DEFAULT_CURRENT_TIME,
            current_prayer_period=_text(stats.current_prayer_period) or DEFAULT_PRAYER_PERIOD,
            next_prayer_info=_text(stats.next_prayer_info) or DEFAULT_NEXT_PRAYER,
        )
    return UserContext(**fields)
