# Contracts for the data sources the engine reads from and the one store it writes to
# challenge_engine/services/interfaces.py
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Protocol

from challenge_engine.models.challenge import (
    AttemptRecord,
    ChallengeCandidate,
    DailySelection,
    ExposureCounts,
    RankedCandidate,
)


class HistoryReader(Protocol):
    async def get_attempts(self, user_id: str, since: datetime) -> List[AttemptRecord]:
        """Attempts submitted strictly after `since`, in no particular order."""
        ...


class CandidatePool(Protocol):
    async def get_active(self, now: datetime) -> List[ChallengeCandidate]:
        """Active challenges that have not expired at `now`."""
        ...

    async def get_by_id(self, challenge_id: str) -> Optional[ChallengeCandidate]:
        ...


class BiasExposureSource(Protocol):
    async def get_exposure(self, user_id: str, since: datetime) -> ExposureCounts:
        ...

    async def get_political_lean(self, user_id: str) -> Optional[float]:
        ...


SelectionCompute = Callable[[], Awaitable[RankedCandidate]]


class DailySelectionStore(Protocol):
    async def get_or_create(self, user_id: str, selection_date: date, compute: SelectionCompute) -> DailySelection:
        """
        Returns the selection for (user_id, selection_date), creating it from
        `compute()` when absent. Must be atomic: concurrent callers for the same
        key all receive the single persisted selection.
        """
        ...
