# Domain models exchanged between the engine components and their data sources
# challenge_engine/models/challenge.py
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from challenge_engine.models.enums import ChallengeType, DifficultyLevel, ProgressTrend, Viewpoint


class ChallengeCandidate(BaseModel):
    """A published challenge. Immutable; owned by the content subsystem."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: ChallengeType
    difficulty: DifficultyLevel
    estimated_seconds: int = Field(gt=0)
    viewpoints: FrozenSet[Viewpoint] = frozenset() # Only meaningful for bias_swap
    is_active: bool = True
    created_at: datetime
    expires_at: Optional[datetime] = None


class AttemptRecord(BaseModel):
    """One submission. Append-only; never mutated or deleted."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    challenge_id: str
    challenge_type: ChallengeType
    difficulty: DifficultyLevel
    is_correct: bool
    time_spent_seconds: int = Field(ge=0)
    submitted_at: datetime
    # Joined from the attempted challenge when the reader knows it
    estimated_seconds: Optional[int] = None
    viewpoints: FrozenSet[Viewpoint] = frozenset()


class UserPerformanceProfile(BaseModel):
    user_id: str
    computed_at: datetime
    attempt_count: int = 0
    recent_attempt_count: int = 0
    # None means "no attempts in the window", which is not the same as 0% success
    overall_success_rate: Optional[float] = None
    recent_success_rate: Optional[float] = None
    type_success_rates: Dict[ChallengeType, float] = {}
    type_attempt_counts: Dict[ChallengeType, int] = {}
    difficulty_success_rates: Dict[DifficultyLevel, float] = {}
    time_ratios: Dict[ChallengeType, float] = {}
    streak_days: int = 0
    last_challenge_types: List[ChallengeType] = [] # Newest first
    current_difficulty: Optional[DifficultyLevel] = None

    @property
    def is_new_user(self) -> bool:
        return self.attempt_count == 0


class ExposureCounts(BaseModel):
    """Raw bias-comparison exposure as reported by the exposure source."""
    attempts: int = 0
    by_viewpoint: Dict[Viewpoint, int] = {}


class BiasExposureProfile(BaseModel):
    user_id: str
    attempts: int = 0
    counts: Dict[Viewpoint, int] = {}
    shares: Dict[Viewpoint, float] = {}
    underexposed: Set[Viewpoint] = set()
    political_lean: Optional[float] = None # > 0 leans right, < 0 leans left


class SelectionScore(BaseModel):
    """Composite score plus the sub-scores that produced it."""
    challenge_id: str
    total: float
    base: float
    target_difficulty: DifficultyLevel
    difficulty_fit: float
    weakness_focus: float
    bias_diversity: float
    type_diversity: float
    streak_multiplier: float
    time_adjustment: float
    reasons: List[str] = []

    def breakdown(self) -> Dict[str, float]:
        return {
            "total": self.total,
            "difficulty_fit": self.difficulty_fit,
            "weakness_focus": self.weakness_focus,
            "bias_diversity": self.bias_diversity,
            "type_diversity": self.type_diversity,
            "streak_multiplier": self.streak_multiplier,
            "time_adjustment": self.time_adjustment,
        }


class RankedCandidate(BaseModel):
    candidate: ChallengeCandidate
    score: SelectionScore


class DailySelection(BaseModel):
    """The authoritative challenge for a user on one calendar day."""
    user_id: str
    selection_date: date
    challenge_id: str
    reasons: List[str] = []
    breakdown: Dict[str, float] = {}
    created_at: datetime


class ProgressReport(BaseModel):
    user_id: str
    strengths: List[ChallengeType] = []
    weaknesses: List[ChallengeType] = []
    recommended_focus: List[ChallengeType] = []
    trend: ProgressTrend = ProgressTrend.STABLE
    ready_for_advanced: bool = False
    target_difficulty: DifficultyLevel = DifficultyLevel.BEGINNER
    overall_success_rate: Optional[float] = None
    recent_success_rate: Optional[float] = None
