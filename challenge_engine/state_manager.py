# SQL-backed data sources for the engine and the append-only attempt log
# challenge_engine/state_manager.py
from collections import Counter
from datetime import date, datetime
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_engine.errors import DataUnavailable, InvalidState
from challenge_engine.models.challenge import (
    AttemptRecord,
    ChallengeCandidate,
    DailySelection,
    ExposureCounts,
)
from challenge_engine.models.enums import ChallengeType, Viewpoint
from challenge_engine.models.tables import (
    Challenge,
    ChallengeAttempt,
    DailyChallengeSelection,
    UserBiasProfile,
)
from challenge_engine.services.interfaces import SelectionCompute
from challenge_engine.utils.clock import as_utc, to_naive_utc, utcnow
from challenge_engine.utils.db import AsyncSessionLocal
from challenge_engine.utils.logger import logger

SessionFactory = Callable[[], AsyncSession]


def candidate_from_row(row: Challenge) -> ChallengeCandidate:
    try:
        return ChallengeCandidate(
            id=row.id,
            type=row.type,
            difficulty=row.difficulty,
            estimated_seconds=row.estimated_seconds,
            viewpoints=row.viewpoints or [],
            is_active=row.is_active,
            created_at=as_utc(row.created_at),
            expires_at=as_utc(row.expires_at) if row.expires_at else None,
        )
    except ValidationError as e:
        raise InvalidState(f"Challenge '{row.id}' could not be read: {e}") from e


def attempt_from_row(row: ChallengeAttempt, estimated_seconds: Optional[int], viewpoints: Optional[list]) -> AttemptRecord:
    try:
        return AttemptRecord(
            user_id=row.user_id,
            challenge_id=row.challenge_id,
            challenge_type=row.challenge_type,
            difficulty=row.difficulty,
            is_correct=row.is_correct,
            time_spent_seconds=row.time_spent_seconds,
            submitted_at=as_utc(row.submitted_at),
            estimated_seconds=estimated_seconds,
            viewpoints=viewpoints or [],
        )
    except ValidationError as e:
        raise InvalidState(f"Attempt {row.id} for user '{row.user_id}' could not be read: {e}") from e


def selection_from_row(row: DailyChallengeSelection) -> DailySelection:
    return DailySelection(
        user_id=row.user_id,
        selection_date=row.selection_date,
        challenge_id=row.challenge_id,
        reasons=[r for r in (row.selection_reason or "").split("; ") if r],
        breakdown=row.score_breakdown or {},
        created_at=as_utc(row.created_at),
    )


class SqlHistoryReader:
    def __init__(self, session_factory: SessionFactory = AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_attempts(self, user_id: str, since: datetime) -> List[AttemptRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ChallengeAttempt, Challenge.estimated_seconds, Challenge.viewpoints)
                    .outerjoin(Challenge, ChallengeAttempt.challenge_id == Challenge.id)
                    .where(ChallengeAttempt.user_id == user_id)
                    .where(ChallengeAttempt.submitted_at > to_naive_utc(since))
                )
                rows = result.all()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not read attempt history for user '{user_id}'") from e

        attempts = []
        for attempt, estimated_seconds, viewpoints in rows:
            try:
                attempts.append(attempt_from_row(attempt, estimated_seconds, viewpoints))
            except InvalidState as e:
                logger.warning(f"Skipping corrupt attempt record: {e}")
        return attempts


class SqlCandidatePool:
    def __init__(self, session_factory: SessionFactory = AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_active(self, now: datetime) -> List[ChallengeCandidate]:
        moment = to_naive_utc(now)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Challenge)
                    .where(Challenge.is_active.is_(True))
                    .where(Challenge.created_at <= moment)
                    .where(or_(Challenge.expires_at.is_(None), Challenge.expires_at > moment))
                    .order_by(Challenge.id)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise DataUnavailable("Could not read the active challenge pool") from e

        candidates = []
        for row in rows:
            try:
                candidates.append(candidate_from_row(row))
            except InvalidState as e:
                logger.warning(f"Skipping corrupt challenge: {e}")
        return candidates

    async def get_by_id(self, challenge_id: str) -> Optional[ChallengeCandidate]:
        try:
            async with self._session_factory() as session:
                row = await session.get(Challenge, challenge_id)
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not read challenge '{challenge_id}'") from e
        return candidate_from_row(row) if row is not None else None


class SqlBiasExposureSource:
    def __init__(self, session_factory: SessionFactory = AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_exposure(self, user_id: str, since: datetime) -> ExposureCounts:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Challenge.viewpoints)
                    .join(ChallengeAttempt, ChallengeAttempt.challenge_id == Challenge.id)
                    .where(ChallengeAttempt.user_id == user_id)
                    .where(ChallengeAttempt.challenge_type == ChallengeType.BIAS_SWAP.value)
                    .where(ChallengeAttempt.submitted_at > to_naive_utc(since))
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not read bias exposure for user '{user_id}'") from e

        counts: Counter = Counter()
        for viewpoints in rows:
            for raw in viewpoints or []:
                try:
                    counts[Viewpoint(raw)] += 1
                except ValueError:
                    logger.warning(f"Ignoring unknown viewpoint tag '{raw}' in exposure for user '{user_id}'")
        return ExposureCounts(attempts=len(rows), by_viewpoint=dict(counts))

    async def get_political_lean(self, user_id: str) -> Optional[float]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(UserBiasProfile.political_lean).filter_by(user_id=user_id)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not read bias profile for user '{user_id}'") from e


class SqlDailySelectionStore:
    """
    Insert-if-absent backed by the unique (user_id, selection_date) constraint.
    Concurrent first requests may each compute a candidate; only one insert
    wins and every caller gets the persisted row back.
    """

    def __init__(self, session_factory: SessionFactory = AsyncSessionLocal):
        self._session_factory = session_factory

    async def _fetch(self, user_id: str, selection_date: date) -> Optional[DailySelection]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DailyChallengeSelection).filter_by(user_id=user_id, selection_date=selection_date)
                )
                row = result.scalars().first()
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not read daily selection for user '{user_id}'") from e
        return selection_from_row(row) if row is not None else None

    async def get_or_create(self, user_id: str, selection_date: date, compute: SelectionCompute) -> DailySelection:
        existing = await self._fetch(user_id, selection_date)
        if existing is not None:
            return existing

        ranked = await compute()
        row = DailyChallengeSelection(
            user_id=user_id,
            selection_date=selection_date,
            challenge_id=ranked.candidate.id,
            selection_reason="; ".join(ranked.score.reasons),
            score_breakdown=ranked.score.breakdown(),
            created_at=to_naive_utc(utcnow()),
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except IntegrityError:
            logger.info(f"Daily selection for user '{user_id}' on {selection_date} was created concurrently; using the stored one.")
            winner = await self._fetch(user_id, selection_date)
            if winner is None:
                raise DataUnavailable(f"Daily selection for user '{user_id}' on {selection_date} vanished after a conflict")
            return winner
        except SQLAlchemyError as e:
            raise DataUnavailable(f"Could not store daily selection for user '{user_id}'") from e
        return selection_from_row(row)


async def record_attempt(
    session: AsyncSession,
    user_id: str,
    challenge_id: str,
    is_correct: bool,
    time_spent_seconds: int,
    submitted_at: Optional[datetime] = None,
) -> Optional[AttemptRecord]:
    """
    Appends one attempt, copying the challenge's type and difficulty onto it.
    Returns None when the challenge does not exist. Commits the session.
    """
    challenge = await session.get(Challenge, challenge_id)
    if challenge is None:
        return None

    row = ChallengeAttempt(
        user_id=user_id,
        challenge_id=challenge_id,
        challenge_type=challenge.type,
        difficulty=challenge.difficulty,
        is_correct=is_correct,
        time_spent_seconds=time_spent_seconds,
        submitted_at=to_naive_utc(submitted_at or utcnow()),
    )
    session.add(row)
    await session.commit()
    logger.info(f"Recorded attempt on '{challenge_id}' for user '{user_id}' (correct={is_correct})")
    return attempt_from_row(row, challenge.estimated_seconds, challenge.viewpoints)


async def list_active_user_ids(since: datetime, session_factory: SessionFactory = AsyncSessionLocal) -> List[str]:
    """Users with at least one attempt after `since`."""
    try:
        async with session_factory() as session:
            result = await session.execute(
                select(ChallengeAttempt.user_id)
                .where(ChallengeAttempt.submitted_at > to_naive_utc(since))
                .distinct()
                .order_by(ChallengeAttempt.user_id)
            )
            return list(result.scalars().all())
    except SQLAlchemyError as e:
        raise DataUnavailable("Could not list active users") from e
