# Composite candidate scoring: difficulty fit, weak-area focus, viewpoint and type diversity, streak, time fit
# challenge_engine/services/scoring.py
from datetime import datetime
from typing import List

from challenge_engine.models.challenge import (
    BiasExposureProfile,
    ChallengeCandidate,
    SelectionScore,
    UserPerformanceProfile,
)
from challenge_engine.models.enums import ChallengeType, DifficultyLevel
from challenge_engine.services.difficulty import difficulty_fit, target_difficulty
from challenge_engine.utils.clock import as_utc
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.logger import logger

# Occurrences of a type among the latest attempts -> diversity sub-score
_REPETITION_SCORES = (1.0, 0.7, 0.4)
_MIN_REPETITION_SCORE = 0.1


class ScoringEngine:
    """
    Multiplies normalized [0, 1] sub-scores raised to their weights, so a single
    near-zero sub-score (e.g. a heavily repeated type) suppresses the candidate
    without additive penalties. The streak and time factors apply unweighted.
    """

    def __init__(self, config: Settings = settings):
        self.config = config

    def score(
        self,
        candidate: ChallengeCandidate,
        profile: UserPerformanceProfile,
        exposure: BiasExposureProfile,
        now: datetime,
    ) -> SelectionScore:
        cfg = self.config
        reasons: List[str] = []

        target = target_difficulty(profile, cfg)
        fit = difficulty_fit(candidate.difficulty, target)
        weakness = self.weakness_focus(candidate.type, profile)
        bias = self.bias_diversity(candidate, exposure)
        variety = self.type_diversity(candidate.type, profile)
        streak = self.streak_multiplier(profile.streak_days)
        timing = self.time_adjustment(candidate.type, profile)

        if fit == 1.0:
            reasons.append("Appropriate difficulty level")
        if candidate.type in profile.type_success_rates and weakness > 0.5:
            reasons.append(f"Targets weak area: {candidate.type.value}")
        if candidate.type == ChallengeType.BIAS_SWAP and bias > 0.8:
            reasons.append("Expands bias perspective")
        if variety == 1.0 and profile.last_challenge_types:
            reasons.append("Adds variety to challenge types")
        if streak > 1.0:
            reasons.append(f"Streak bonus: {round((streak - 1) * 100)}%")
        if timing < 1.0:
            reasons.append("Adjusted for time constraints")

        total = (
            cfg.base_score
            * fit ** cfg.difficulty_fit_weight
            * weakness ** cfg.weakness_focus_weight
            * bias ** cfg.bias_diversity_weight
            * variety ** cfg.type_diversity_weight
            * streak
            * timing
        )
        if not self._selectable(candidate, now):
            total = 0.0
            reasons.append("Inactive or expired")

        logger.debug(
            f"Scored {candidate.id} for {profile.user_id}: total={total:.3f} fit={fit} weakness={weakness:.2f} "
            f"bias={bias:.2f} variety={variety} streak={streak:.2f} time={timing}"
        )
        return SelectionScore(
            challenge_id=candidate.id,
            total=total,
            base=cfg.base_score,
            target_difficulty=target,
            difficulty_fit=fit,
            weakness_focus=weakness,
            bias_diversity=bias,
            type_diversity=variety,
            streak_multiplier=streak,
            time_adjustment=timing,
            reasons=reasons,
        )

    def target_difficulty(self, profile: UserPerformanceProfile) -> DifficultyLevel:
        return target_difficulty(profile, self.config)

    def weakness_focus(self, challenge_type: ChallengeType, profile: UserPerformanceProfile) -> float:
        rate = profile.type_success_rates.get(challenge_type)
        if rate is None:
            # Unexplored types are desirable, not weak
            return self.config.neutral_weakness_score
        return max(self.config.weakness_floor, min(1.0, 1.0 - rate))

    def bias_diversity(self, candidate: ChallengeCandidate, exposure: BiasExposureProfile) -> float:
        cfg = self.config
        if candidate.type != ChallengeType.BIAS_SWAP or not candidate.viewpoints:
            # Untagged comparisons offer no known perspective; treat them like other types
            return cfg.neutral_bias_score

        score = cfg.bias_base_score
        if candidate.viewpoints & exposure.underexposed:
            score += cfg.underexposed_bonus

        lean = exposure.political_lean
        if lean:
            if lean > 0:
                opposing = any(v.lean < -1 for v in candidate.viewpoints)
            else:
                opposing = any(v.lean > 1 for v in candidate.viewpoints)
            if opposing:
                score += cfg.opposing_view_bonus

        return min(1.0, score)

    def type_diversity(self, challenge_type: ChallengeType, profile: UserPerformanceProfile) -> float:
        seen = profile.last_challenge_types.count(challenge_type)
        if seen < len(_REPETITION_SCORES):
            return _REPETITION_SCORES[seen]
        return _MIN_REPETITION_SCORE

    def streak_multiplier(self, streak_days: int) -> float:
        capped = min(max(streak_days, 0), self.config.streak_bonus_cap_days)
        return 1.0 + self.config.streak_bonus_weight * capped / self.config.streak_bonus_cap_days

    def time_adjustment(self, challenge_type: ChallengeType, profile: UserPerformanceProfile) -> float:
        ratio = profile.time_ratios.get(challenge_type)
        if ratio is not None and ratio > self.config.slow_time_ratio:
            return self.config.slow_time_penalty
        return 1.0

    @staticmethod
    def _selectable(candidate: ChallengeCandidate, now: datetime) -> bool:
        if not candidate.is_active:
            return False
        return candidate.expires_at is None or as_utc(candidate.expires_at) > as_utc(now)
