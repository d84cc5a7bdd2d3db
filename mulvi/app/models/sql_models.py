from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from ..db.base import Base


def generate_uuid():
    return str(uuid4())


class User(Base):
    """SQLAlchemy model for user profiles."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(512), nullable=True)
    theme_preference = Column(String(20), nullable=True)
    prayer_method = Column(String(50), nullable=True)
    location = Column(String(255), nullable=True)
    # Prayer reminders, community updates, reminder timing...
    notification_settings = Column(JSON, default=dict)
    onboarding_completed = Column(Boolean, default=False)
    # Seed written from the finished onboarding state
    onboarding_json = Column("onboarding", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)
    last_active_at = Column(DateTime, nullable=True)

    # Relationships
    prayer_records = relationship("PrayerRecord", back_populates="user", cascade="all, delete-orphan")
    onboarding_session = relationship(
        "OnboardingSession", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(id='{self.id}', display_name='{self.display_name}')>"


class OnboardingSession(Base):
    """SQLAlchemy model for an in-progress onboarding machine."""

    __tablename__ = "onboarding_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    step = Column(String(40), nullable=False, default="welcome")
    state_json = Column("state", JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)

    user = relationship("User", back_populates="onboarding_session")

    def __repr__(self):
        return f"<OnboardingSession(user_id='{self.user_id}', step='{self.step}')>"


class PrayerRecord(Base):
    """SQLAlchemy model for a completed prayer."""

    __tablename__ = "prayer_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    prayer_name = Column(String(20), nullable=False)  # 'fajr', 'dhuhr', 'asr', 'maghrib', 'isha'
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notes = Column(Text, nullable=True)

    user = relationship("User", back_populates="prayer_records")

    def __repr__(self):
        return f"<PrayerRecord(user_id='{self.user_id}', prayer='{self.prayer_name}')>"
