# challenge_engine/models/tables.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Text,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime


Base = declarative_base()


class Challenge(Base):
    __tablename__ = "challenges"
    id = Column(String, primary_key=True, index=True)
    type = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    estimated_seconds = Column(Integer, nullable=False)
    viewpoints = Column(JSON, default=lambda: [])
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)

    attempts = relationship("ChallengeAttempt", back_populates="challenge")


class ChallengeAttempt(Base):
    """Append-only submission log read by the performance analyzer."""
    __tablename__ = "challenge_attempts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    challenge_id = Column(String, ForeignKey("challenges.id"), nullable=False)
    # Denormalized at submission time so history survives catalog edits
    challenge_type = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    time_spent_seconds = Column(Integer, nullable=False)
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)

    challenge = relationship("Challenge", back_populates="attempts")


class DailyChallengeSelection(Base):
    __tablename__ = "daily_challenge_selections"
    # One authoritative selection per user and calendar day
    __table_args__ = (UniqueConstraint("user_id", "selection_date", name="uq_daily_selection_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    selection_date = Column(Date, nullable=False, index=True)
    challenge_id = Column(String, ForeignKey("challenges.id"), nullable=False)
    selection_reason = Column(Text, nullable=False, default="")
    score_breakdown = Column(JSON, default=lambda: {})
    created_at = Column(DateTime, default=datetime.utcnow)


class UserBiasProfile(Base):
    __tablename__ = "user_bias_profiles"
    user_id = Column(String, primary_key=True, index=True)
    political_lean = Column(Float, nullable=True) # Self-reported, > 0 leans right
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
