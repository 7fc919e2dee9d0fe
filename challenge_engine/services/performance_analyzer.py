# Derives a user's performance profile from their attempt history
# challenge_engine/services/performance_analyzer.py
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from challenge_engine.models.challenge import AttemptRecord, UserPerformanceProfile
from challenge_engine.models.enums import DifficultyLevel
from challenge_engine.services.interfaces import HistoryReader
from challenge_engine.utils.clock import as_utc, local_day
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.logger import logger


def _success_rate(attempts: List[AttemptRecord]) -> Optional[float]:
    if not attempts:
        return None
    return sum(1 for a in attempts if a.is_correct) / len(attempts)


def _rates_by(attempts: Iterable[AttemptRecord], key) -> Dict:
    grouped = defaultdict(list)
    for attempt in attempts:
        grouped[key(attempt)].append(attempt)
    return {k: _success_rate(v) for k, v in grouped.items()}


class PerformanceAnalyzer:
    def __init__(self, history_reader: HistoryReader, config: Settings = settings):
        self.history_reader = history_reader
        self.config = config

    def window_start(self, now: datetime) -> datetime:
        return as_utc(now) - timedelta(days=self.config.performance_window_days)

    async def analyze(self, user_id: str, now: datetime) -> UserPerformanceProfile:
        """
        Fetches the overall window of attempts and builds the profile.
        DataUnavailable from the reader propagates unchanged.
        """
        attempts = await self.history_reader.get_attempts(user_id, self.window_start(now))
        return self.build_profile(user_id, attempts, now)

    def build_profile(self, user_id: str, attempts: Iterable[AttemptRecord], now: datetime) -> UserPerformanceProfile:
        """Pure computation over already-fetched attempts."""
        now = as_utc(now)
        window_start = self.window_start(now)
        recent_start = now - timedelta(days=self.config.recent_window_days)

        in_window = sorted(
            (a for a in attempts if window_start < as_utc(a.submitted_at) <= now),
            key=lambda a: as_utc(a.submitted_at),
            reverse=True,
        )
        recent = [a for a in in_window if as_utc(a.submitted_at) > recent_start]

        type_counts: Dict = defaultdict(int)
        for attempt in in_window:
            type_counts[attempt.challenge_type] += 1

        profile = UserPerformanceProfile(
            user_id=user_id,
            computed_at=now,
            attempt_count=len(in_window),
            recent_attempt_count=len(recent),
            overall_success_rate=_success_rate(in_window),
            recent_success_rate=_success_rate(recent),
            type_success_rates=_rates_by(in_window, lambda a: a.challenge_type),
            type_attempt_counts=dict(type_counts),
            difficulty_success_rates=_rates_by(in_window, lambda a: a.difficulty),
            time_ratios=self._time_ratios(in_window),
            streak_days=self._streak(in_window, now),
            last_challenge_types=[a.challenge_type for a in in_window[: self.config.recent_types_window]],
            current_difficulty=self._current_difficulty(recent or in_window),
        )
        logger.debug(
            f"Profile for {user_id}: attempts={profile.attempt_count}, overall={profile.overall_success_rate}, "
            f"recent={profile.recent_success_rate}, streak={profile.streak_days}"
        )
        return profile

    def _current_difficulty(self, attempts: List[AttemptRecord]) -> Optional[DifficultyLevel]:
        """
        Highest level with at least the adjustment minimum of attempts, or
        beginner when no level has that many. Adding attempts can only raise
        it, so an easier challenge taken in passing never lowers the level.
        """
        if not attempts:
            return None
        counts = Counter(a.difficulty for a in attempts)
        established = [level for level, n in counts.items() if n >= self.config.min_attempts_for_adjustment]
        if not established:
            return DifficultyLevel.BEGINNER
        return max(established, key=lambda level: level.rank)

    @staticmethod
    def _time_ratios(attempts: List[AttemptRecord]) -> Dict:
        ratios = defaultdict(list)
        for attempt in attempts:
            if attempt.estimated_seconds:
                ratios[attempt.challenge_type].append(attempt.time_spent_seconds / attempt.estimated_seconds)
        return {t: sum(values) / len(values) for t, values in ratios.items()}

    def _streak(self, attempts: List[AttemptRecord], now: datetime) -> int:
        """Consecutive active days ending today, or yesterday while today is still open."""
        tz_name = self.config.selection_timezone
        active_days = {local_day(a.submitted_at, tz_name) for a in attempts}
        day = local_day(now, tz_name)
        if day not in active_days:
            day -= timedelta(days=1)

        streak = 0
        while day in active_days:
            streak += 1
            day -= timedelta(days=1)
        return streak
