# Picks today's challenge and ranked recommendations for a user
# challenge_engine/services/selection.py
import asyncio
import hashlib
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from challenge_engine.errors import NoActiveCandidates
from challenge_engine.models.challenge import (
    AttemptRecord,
    BiasExposureProfile,
    ChallengeCandidate,
    RankedCandidate,
    UserPerformanceProfile,
)
from challenge_engine.services.bias_exposure import BiasExposureTracker
from challenge_engine.services.interfaces import CandidatePool, DailySelectionStore, HistoryReader
from challenge_engine.services.performance_analyzer import PerformanceAnalyzer
from challenge_engine.services.scoring import ScoringEngine
from challenge_engine.utils.clock import as_utc, local_day, utcnow
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.logger import logger

FALLBACK_REASON = "Fallback: every active challenge was completed recently"


def tie_break_hash(user_id: str, day: date, challenge_id: str) -> str:
    """Stable across processes, unlike hash(); same inputs always order the same way."""
    return hashlib.sha256(f"{user_id}|{day.isoformat()}|{challenge_id}".encode("utf-8")).hexdigest()


class SelectionEngine:
    def __init__(
        self,
        history_reader: HistoryReader,
        candidate_pool: CandidatePool,
        exposure_tracker: BiasExposureTracker,
        selection_store: DailySelectionStore,
        analyzer: Optional[PerformanceAnalyzer] = None,
        scorer: Optional[ScoringEngine] = None,
        config: Settings = settings,
    ):
        self.history_reader = history_reader
        self.candidate_pool = candidate_pool
        self.exposure_tracker = exposure_tracker
        self.selection_store = selection_store
        self.analyzer = analyzer or PerformanceAnalyzer(history_reader, config)
        self.scorer = scorer or ScoringEngine(config)
        self.config = config

    def selection_day(self, now: datetime) -> date:
        return local_day(now, self.config.selection_timezone)

    async def select_next(self, user_id: str, now: Optional[datetime] = None) -> ChallengeCandidate:
        """
        Returns the user's challenge for the calendar day of `now`. The first call
        of the day ranks the pool and persists the winner; later calls (including
        concurrent ones) get the same challenge back from the store.
        """
        now = as_utc(now or utcnow())
        day = self.selection_day(now)
        computed: Optional[RankedCandidate] = None

        async def compute() -> RankedCandidate:
            nonlocal computed
            computed = await self._choose(user_id, day, now)
            return computed

        selection = await self.selection_store.get_or_create(user_id, day, compute)

        if computed is not None and computed.candidate.id == selection.challenge_id:
            logger.info(f"Selected challenge {selection.challenge_id} for user {user_id} on {day}: {'; '.join(selection.reasons)}")
            return computed.candidate

        candidate = await self.candidate_pool.get_by_id(selection.challenge_id)
        if candidate is None:
            raise NoActiveCandidates(
                f"Daily selection for user {user_id} on {day} references missing challenge {selection.challenge_id}"
            )
        logger.debug(f"Returning existing selection {selection.challenge_id} for user {user_id} on {day}")
        return candidate

    async def recommend(self, user_id: str, count: int, now: Optional[datetime] = None) -> List[ChallengeCandidate]:
        """Top `count` distinct candidates by score. Nothing is persisted."""
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")
        now = as_utc(now or utcnow())
        ranked = await self.rank(user_id, now)
        return [entry.candidate for entry in ranked[:count]]

    async def rank(self, user_id: str, now: Optional[datetime] = None) -> List[RankedCandidate]:
        """
        Full ordering of the eligible candidates, best first. Falls back to the
        whole active pool when repeat prevention leaves nothing.
        """
        now = as_utc(now or utcnow())
        day = self.selection_day(now)
        profile, exposure, history, active = await self._load(user_id, now)

        eligible = self._exclude_recent(active, history, now)
        if not eligible:
            logger.info(f"All {len(active)} active challenges were completed recently by {user_id}; ranking the full pool.")
            eligible = active
        return self._score_and_order(user_id, day, eligible, profile, exposure, history, now)

    async def _choose(self, user_id: str, day: date, now: datetime) -> RankedCandidate:
        profile, exposure, history, active = await self._load(user_id, now)

        eligible = self._exclude_recent(active, history, now)
        if eligible:
            return self._score_and_order(user_id, day, eligible, profile, exposure, history, now)[0]

        # Fail soft: a repeat beats returning nothing
        last_seen = self._last_seen(history)
        candidate = min(
            active,
            key=lambda c: (last_seen.get(c.id, datetime.min), tie_break_hash(user_id, day, c.id)),
        )
        score = self.scorer.score(candidate, profile, exposure, now)
        score.reasons.append(FALLBACK_REASON)
        logger.info(f"Fallback selection for user {user_id}: least recently seen challenge {candidate.id}")
        return RankedCandidate(candidate=candidate, score=score)

    async def _load(
        self, user_id: str, now: datetime
    ) -> Tuple[UserPerformanceProfile, BiasExposureProfile, List[AttemptRecord], List[ChallengeCandidate]]:
        # History and exposure are independent reads; the profile is built once per request
        history, exposure = await asyncio.gather(
            self.history_reader.get_attempts(user_id, self.analyzer.window_start(now)),
            self.exposure_tracker.exposure(user_id, now),
        )
        active = await self.candidate_pool.get_active(now)
        if not active:
            raise NoActiveCandidates("The candidate pool has no active challenges")
        profile = self.analyzer.build_profile(user_id, history, now)
        return profile, exposure, history, active

    def _exclude_recent(
        self, active: List[ChallengeCandidate], history: List[AttemptRecord], now: datetime
    ) -> List[ChallengeCandidate]:
        cutoff = now - timedelta(days=self.config.repeat_prevention_days)
        recent_ids = {a.challenge_id for a in history if cutoff < as_utc(a.submitted_at) <= now}
        return [c for c in active if c.id not in recent_ids]

    @staticmethod
    def _last_seen(history: List[AttemptRecord]) -> Dict[str, datetime]:
        last_seen: Dict[str, datetime] = {}
        for attempt in history:
            seen = as_utc(attempt.submitted_at).replace(tzinfo=None)
            if attempt.challenge_id not in last_seen or seen > last_seen[attempt.challenge_id]:
                last_seen[attempt.challenge_id] = seen
        return last_seen

    def _score_and_order(
        self,
        user_id: str,
        day: date,
        candidates: List[ChallengeCandidate],
        profile: UserPerformanceProfile,
        exposure: BiasExposureProfile,
        history: List[AttemptRecord],
        now: datetime,
    ) -> List[RankedCandidate]:
        presentations = Counter(a.challenge_id for a in history)
        ranked = [
            RankedCandidate(candidate=c, score=self.scorer.score(c, profile, exposure, now))
            for c in candidates
        ]
        # Highest score, then fewest presentations, then the per-day hash
        ranked.sort(
            key=lambda r: (
                -round(r.score.total, 9),
                presentations[r.candidate.id],
                tie_break_hash(user_id, day, r.candidate.id),
            )
        )
        return ranked
