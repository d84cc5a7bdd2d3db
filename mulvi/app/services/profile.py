import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from ..config import get_settings
from ..db.base import SessionLocal
from ..models.conversation import UserContext
from ..models.prayer import PrayerStats
from ..models.sql_models import OnboardingSession as SQLOnboardingSession
from ..models.sql_models import PrayerRecord as SQLPrayerRecord
from ..models.sql_models import User as SQLUser
from ..models.user import UserProfile, UserProfileCreate
from ..orchestration.context import aggregate
from ..policies.onboarding import OnboardingMachine, OnboardingState
from .stats import compute_prayer_stats

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    # Stored timestamps are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProfileStore:
    """Profile, onboarding session and prayer record access for one request."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def create_profile(self, body: UserProfileCreate) -> UserProfile:
        db = self.session_factory()
        try:
            row = SQLUser(
                display_name=body.display_name,
                avatar_url=body.avatar_url,
                prayer_method=body.prayer_method,
                location=body.location,
                notification_settings={},
                created_at=_utcnow(),
            )
            if body.id:
                row.id = body.id
            db.add(row)
            db.commit()
            db.refresh(row)
            return UserProfile.from_row(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        db = self.session_factory()
        try:
            row = db.query(SQLUser).filter(SQLUser.id == user_id).first()
            return UserProfile.from_row(row) if row else None
        finally:
            db.close()

    def _ensure_user(self, db, user_id: str) -> SQLUser:
        row = db.query(SQLUser).filter(SQLUser.id == user_id).first()
        if row is None:
            row = SQLUser(id=user_id, notification_settings={}, created_at=_utcnow())
            db.add(row)
            db.flush()
        return row

    # Onboarding

    def load_onboarding(self, user_id: str) -> OnboardingMachine:
        db = self.session_factory()
        try:
            sess = db.query(SQLOnboardingSession).filter(SQLOnboardingSession.user_id == user_id).first()
            if sess is None:
                return OnboardingMachine()
            return OnboardingMachine.from_record({"step": sess.step, "state": sess.state_json})
        finally:
            db.close()

    def save_onboarding(self, user_id: str, machine: OnboardingMachine) -> None:
        """Store the machine; on completion also seed the profile from its state."""
        record = machine.to_record()
        db = self.session_factory()
        try:
            user = self._ensure_user(db, user_id)
            sess = db.query(SQLOnboardingSession).filter(SQLOnboardingSession.user_id == user_id).first()
            if sess is None:
                sess = SQLOnboardingSession(user_id=user_id)
                db.add(sess)
            sess.step = record["step"]
            sess.state_json = record["state"]

            if machine.completed and not user.onboarding_completed:
                state = machine.state
                user.onboarding_json = state.to_profile_seed()
                user.onboarding_completed = True
                user.theme_preference = state.theme.value if state.theme else user.theme_preference
                user.prayer_method = user.prayer_method or state.qibla_settings.calculation_method
                user.notification_settings = {
                    **(user.notification_settings or {}),
                    "prayer_reminders": state.reminder_settings.style != "none",
                }
                logger.info("Onboarding completed for user %s; profile seeded", user_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def onboarding_state(self, user_id: str) -> Optional[OnboardingState]:
        db = self.session_factory()
        try:
            sess = db.query(SQLOnboardingSession).filter(SQLOnboardingSession.user_id == user_id).first()
            if sess is None or not sess.state_json:
                return None
            return OnboardingState.model_validate(sess.state_json)
        finally:
            db.close()

    # Prayer records

    def record_prayer(
        self, user_id: str, prayer_name: str, completed_at: Optional[datetime] = None, notes: Optional[str] = None
    ) -> SQLPrayerRecord:
        db = self.session_factory()
        try:
            user = self._ensure_user(db, user_id)
            stamp = completed_at or _utcnow()
            if stamp.tzinfo is not None:
                stamp = stamp.astimezone(timezone.utc).replace(tzinfo=None)
            row = SQLPrayerRecord(user_id=user_id, prayer_name=prayer_name, completed_at=stamp, notes=notes)
            db.add(row)
            user.last_active_at = _utcnow()
            db.commit()
            db.refresh(row)
            db.expunge(row)
            return row
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def prayer_history(self, user_id: str, since: datetime) -> List[Tuple[str, datetime]]:
        db = self.session_factory()
        try:
            rows = (
                db.query(SQLPrayerRecord)
                .filter(SQLPrayerRecord.user_id == user_id, SQLPrayerRecord.completed_at >= since)
                .order_by(SQLPrayerRecord.completed_at.asc())
                .all()
            )
            return [(r.prayer_name, r.completed_at) for r in rows]
        finally:
            db.close()

    def prayer_stats(self, user_id: str, now: Optional[datetime] = None) -> Optional[PrayerStats]:
        """Stats over the stored records, or None when the user never logged a prayer."""
        settings = get_settings()
        now = now or _utcnow()
        # Enough history for the window and a streak of any realistic length
        since = now - timedelta(days=max(settings.STATS_WINDOW_DAYS, 366))
        history = self.prayer_history(user_id, since)
        if not history:
            return None
        return compute_prayer_stats(
            history,
            now,
            window_days=settings.STATS_WINDOW_DAYS,
            threshold=settings.STRUGGLING_THRESHOLD,
        )

    def user_context(self, user_id: str, now: Optional[datetime] = None) -> UserContext:
        """Aggregate everything the store knows about `user_id`."""
        profile = self.get_profile(user_id)
        stats = self.prayer_stats(user_id, now=now)
        onboarding = self.onboarding_state(user_id)
        return aggregate(
            profile,
            stats,
            onboarding,
            now=now,
            struggling_threshold=get_settings().STRUGGLING_THRESHOLD,
        )


def get_profile_store() -> ProfileStore:
    """Dependency for getting the profile store."""
    return ProfileStore()
