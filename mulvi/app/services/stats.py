from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

from ..models.prayer import PRAYER_ORDER, PrayerStats, normalize_prayer_name


def current_prayer_period(hour: int) -> str:
    """Coarse part of the day used to frame advice."""
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 15:
        return "midday"
    if 15 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 20:
        return "evening"
    return "night"


def _parse_hhmm(value: str) -> Optional[time]:
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        return None


def next_prayer_info(now: datetime, schedule: Optional[Mapping[str, str]]) -> Optional[str]:
    """'Asr at 15:30' for the first scheduled prayer after `now`, else tomorrow's first."""
    if not schedule:
        return None
    times = []
    for name, value in schedule.items():
        key = normalize_prayer_name(name)
        at = _parse_hhmm(value) if isinstance(value, str) else None
        if key is not None and at is not None:
            times.append((at, key))
    if not times:
        return None
    times.sort()
    for at, key in times:
        if at > now.time():
            return f"{key.capitalize()} at {at.strftime('%H:%M')}"
    at, key = times[0]
    return f"{key.capitalize()} at {at.strftime('%H:%M')} tomorrow"


def _completions(records: Iterable[Tuple[str, datetime]]) -> Dict[date, Set[str]]:
    by_day: Dict[date, Set[str]] = {}
    for name, completed_at in records:
        key = normalize_prayer_name(name)
        if key is None or completed_at is None:
            continue
        by_day.setdefault(completed_at.date(), set()).add(key)
    return by_day


def _streak(by_day: Dict[date, Set[str]], today: date) -> int:
    required = set(PRAYER_ORDER)
    day = today
    # An unfinished today does not break the streak yet
    if not required <= by_day.get(day, set()):
        day = today - timedelta(days=1)
    streak = 0
    while required <= by_day.get(day, set()):
        streak += 1
        day -= timedelta(days=1)
    return streak


def compute_prayer_stats(
    records: Iterable[Tuple[str, datetime]],
    now: datetime,
    *,
    window_days: int = 7,
    threshold: float = 0.6,
    schedule: Optional[Mapping[str, str]] = None,
) -> PrayerStats:
    """Build PrayerStats from (prayer_name, completed_at) pairs.

    Timestamps are compared in the timezone they carry; the caller supplies
    `now` in the same one.
    """
    window_days = max(int(window_days), 1)
    by_day = _completions(records)
    today = now.date()
    window = [today - timedelta(days=i) for i in range(window_days)]

    done = sum(len(by_day.get(d, set())) for d in window)
    completion_rate = done / (window_days * len(PRAYER_ORDER))
    consistency = {
        name: sum(1 for d in window if name in by_day.get(d, set())) / window_days for name in PRAYER_ORDER
    }

    return PrayerStats(
        current_streak=_streak(by_day, today),
        completion_rate=round(completion_rate, 4),
        today_completed=len(by_day.get(today, set())),
        today_total=len(PRAYER_ORDER),
        prayer_consistency={k: round(v, 4) for k, v in consistency.items()},
        struggling_prayers=[name for name in PRAYER_ORDER if consistency[name] < threshold],
        as_of=now,
        current_time=now.strftime("%H:%M"),
        current_prayer_period=current_prayer_period(now.hour),
        next_prayer_info=next_prayer_info(now, schedule),
    )
