from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from mulvi.app.models.conversation import UserContext
from mulvi.app.models.prayer import PrayerStats
from mulvi.app.models.user import UserProfile
from mulvi.app.orchestration.context import aggregate
from mulvi.app.policies.onboarding import OnboardingState, Theme

NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


def _profile(**kw) -> UserProfile:
    base = dict(
        id="u1",
        display_name="Amina",
        prayer_method="MWL",
        theme_preference="beginner",
        created_at=NOW - timedelta(days=42, hours=3),
    )
    base.update(kw)
    return UserProfile(**base)


def _stats(**kw) -> PrayerStats:
    base = dict(
        current_streak=7,
        completion_rate=0.82,
        today_completed=3,
        today_total=5,
        prayer_consistency={"fajr": 0.4, "dhuhr": 1.0, "asr": 0.9, "maghrib": 1.0, "isha": 0.5},
        as_of=NOW,
        current_time="14:00",
        current_prayer_period="midday",
        next_prayer_info="Asr at 15:30",
    )
    base.update(kw)
    return PrayerStats(**base)


def _onboarding(**kw) -> OnboardingState:
    base = dict(
        motivations=["consistency"],
        prayer_story="Returning after a break",
        theme=Theme.DEGEN,
        intentions=["Pray Fajr on time"],
        goals=["improve"],
        prayer_baseline={"fajr": False, "dhuhr": True, "asr": True, "maghrib": True, "isha": False},
        completed=True,
    )
    base.update(kw)
    return OnboardingState(**base)


@pytest.mark.parametrize("has_profile,has_stats,has_onboarding", list(product([True, False], repeat=3)))
def test_aggregate_never_fails_for_any_subset(has_profile, has_stats, has_onboarding):
    ctx = aggregate(
        _profile() if has_profile else None,
        _stats() if has_stats else None,
        _onboarding() if has_onboarding else None,
        now=NOW,
    )
    assert isinstance(ctx, UserContext)
    if not has_profile:
        assert ctx.user_name == "friend"
        assert ctx.account_age == 0
    if not has_stats:
        assert ctx.current_streak == 0
        assert ctx.completion_rate == 0.0
        assert ctx.today_completed == 0
        assert ctx.today_total == 0
        assert ctx.current_time == "unknown"
        assert ctx.current_prayer_period == "unknown period"
        assert ctx.next_prayer_info == "upcoming"
        assert ctx.struggling_prayers == []
    if not has_onboarding:
        assert ctx.motivations == []
        assert ctx.intentions == []
        assert ctx.prayer_story is None
        assert ctx.prayer_baseline is None


def test_all_absent_yields_documented_defaults():
    ctx = aggregate(None, None, None)
    assert ctx == UserContext()
    assert ctx.prayer_method == "ISNA"
    assert ctx.user_theme == "serene"


def test_full_merge():
    ctx = aggregate(_profile(), _stats(), _onboarding(), now=NOW)
    assert ctx.user_name == "Amina"
    assert ctx.account_age == 42
    assert ctx.prayer_method == "MWL"
    # Onboarding theme takes precedence over the stored preference
    assert ctx.user_theme == "degen"
    assert ctx.motivations == ["consistency"]
    assert ctx.goals == ["improve"]
    assert ctx.current_streak == 7
    assert ctx.completion_rate == 0.82
    assert ctx.struggling_prayers == ["fajr", "isha"]
    assert ctx.next_prayer_info == "Asr at 15:30"
    assert ctx.prayer_baseline["dhuhr"] is True


def test_explicit_struggling_list_wins_over_threshold():
    ctx = aggregate(None, _stats(struggling_prayers=["asr"]), None)
    assert ctx.struggling_prayers == ["asr"]


def test_threshold_is_configurable():
    ctx = aggregate(None, _stats(), None, struggling_threshold=0.45)
    assert ctx.struggling_prayers == ["fajr"]


def test_blank_and_future_profile_values_default():
    profile = _profile(display_name="   ", prayer_method="", created_at=NOW + timedelta(days=3))
    ctx = aggregate(profile, None, None, now=NOW)
    assert ctx.user_name == "friend"
    assert ctx.prayer_method == "ISNA"
    assert ctx.account_age == 0
    assert ctx.user_theme == "beginner"


def test_account_age_uses_stats_clock_and_naive_timestamps():
    profile = _profile(created_at=datetime(2026, 3, 1, 9, 0))
    ctx = aggregate(profile, _stats(), None)
    assert ctx.account_age == 9


def test_profile_seed_fills_in_before_onboarding_session_is_loaded():
    profile = _profile(motivations=["peace"], prayer_story="Seeking deeper connection")
    ctx = aggregate(profile, None, None, now=NOW)
    assert ctx.motivations == ["peace"]
    assert ctx.prayer_story == "Seeking deeper connection"


def test_onboarding_method_used_when_profile_has_none():
    onboarding = _onboarding()
    onboarding = onboarding.model_copy(
        update={"qibla_settings": onboarding.qibla_settings.model_copy(update={"calculation_method": "Egypt"})}
    )
    ctx = aggregate(None, None, onboarding)
    assert ctx.prayer_method == "Egypt"


def test_out_of_range_stats_are_clamped():
    ctx = aggregate(None, _stats(completion_rate=1.7, current_streak=-2), None)
    assert ctx.completion_rate == 1.0
    assert ctx.current_streak == 0


def test_aggregate_is_deterministic():
    args = (_profile(), _stats(), _onboarding())
    assert aggregate(*args) == aggregate(*args)
