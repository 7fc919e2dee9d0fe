# challenge_engine/services/progress.py
from datetime import datetime
from typing import Optional

from challenge_engine.models.challenge import ProgressReport, UserPerformanceProfile
from challenge_engine.models.enums import DifficultyLevel, ProgressTrend
from challenge_engine.services.difficulty import target_difficulty
from challenge_engine.services.performance_analyzer import PerformanceAnalyzer
from challenge_engine.utils.clock import as_utc, utcnow
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.logger import logger


class ProgressReporter:
    def __init__(self, analyzer: PerformanceAnalyzer, config: Settings = settings):
        self.analyzer = analyzer
        self.config = config

    async def analyze_progress(self, user_id: str, now: Optional[datetime] = None) -> ProgressReport:
        now = as_utc(now or utcnow())
        profile = await self.analyzer.analyze(user_id, now)
        report = self.build_report(profile)
        logger.info(
            f"Progress for {user_id}: trend={report.trend.value}, strengths={[t.value for t in report.strengths]}, "
            f"weaknesses={[t.value for t in report.weaknesses]}, ready_for_advanced={report.ready_for_advanced}"
        )
        return report

    def build_report(self, profile: UserPerformanceProfile) -> ProgressReport:
        cfg = self.config
        strengths, weaknesses = [], []
        for challenge_type, rate in profile.type_success_rates.items():
            # Small samples are never reported either way
            if profile.type_attempt_counts.get(challenge_type, 0) < cfg.progress_min_sample:
                continue
            if rate > cfg.strength_threshold:
                strengths.append(challenge_type)
            elif rate < cfg.weakness_threshold:
                weaknesses.append(challenge_type)

        # Weak areas the user has not been drilling lately
        recommended_focus = [w for w in weaknesses if profile.last_challenge_types.count(w) < 2]

        target = target_difficulty(profile, cfg)
        return ProgressReport(
            user_id=profile.user_id,
            strengths=sorted(strengths, key=lambda t: t.value),
            weaknesses=sorted(weaknesses, key=lambda t: t.value),
            recommended_focus=sorted(recommended_focus, key=lambda t: t.value),
            trend=self._trend(profile),
            ready_for_advanced=target == DifficultyLevel.ADVANCED,
            target_difficulty=target,
            overall_success_rate=profile.overall_success_rate,
            recent_success_rate=profile.recent_success_rate,
        )

    def _trend(self, profile: UserPerformanceProfile) -> ProgressTrend:
        recent, overall = profile.recent_success_rate, profile.overall_success_rate
        if recent is None or overall is None:
            return ProgressTrend.STABLE
        diff = recent - overall
        if diff > self.config.trend_delta:
            return ProgressTrend.IMPROVING
        if diff < -self.config.trend_delta:
            return ProgressTrend.DECLINING
        return ProgressTrend.STABLE
