# challenge_engine/endpoints/challenges.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_engine.errors import DataUnavailable, InvalidState, NoActiveCandidates
from challenge_engine.models.challenge import AttemptRecord, ChallengeCandidate, ProgressReport
from challenge_engine.services.engine_factory import build_progress_reporter, build_selection_engine
from challenge_engine.services.progress import ProgressReporter
from challenge_engine.services.selection import SelectionEngine
from challenge_engine.state_manager import record_attempt
from challenge_engine.utils.config import settings
from challenge_engine.utils.db import get_db
from challenge_engine.utils.logger import logger

router = APIRouter(
    prefix="/challenges/{user_id}",
    tags=["Challenges"]
)


def get_selection_engine() -> SelectionEngine:
    return build_selection_engine()


def get_progress_reporter() -> ProgressReporter:
    return build_progress_reporter()


class AttemptRequest(BaseModel):
    challenge_id: str
    is_correct: bool
    time_spent_seconds: int = Field(ge=0)


@router.get("/today", response_model=ChallengeCandidate)
async def get_todays_challenge(user_id: str, engine: SelectionEngine = Depends(get_selection_engine)):
    """Today's challenge for the user. Repeated calls on the same day return the same challenge."""
    try:
        return await engine.select_next(user_id)
    except NoActiveCandidates as e:
        logger.warning(f"No challenge available for user {user_id}: {e}")
        raise HTTPException(status_code=404, detail="No adaptive challenge available")
    except DataUnavailable as e:
        logger.error(f"Data unavailable while selecting for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Challenge data is temporarily unavailable")
    except InvalidState as e:
        logger.error(f"Stored selection for user {user_id} could not be read: {e}")
        raise HTTPException(status_code=503, detail="Challenge data is temporarily unavailable")


@router.get("/recommendations", response_model=List[ChallengeCandidate])
async def get_recommendations(
    user_id: str,
    count: int = Query(settings.default_recommendation_count, ge=1, le=20),
    engine: SelectionEngine = Depends(get_selection_engine),
):
    try:
        return await engine.recommend(user_id, count)
    except NoActiveCandidates:
        return []
    except DataUnavailable as e:
        logger.error(f"Data unavailable while recommending for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Challenge data is temporarily unavailable")


@router.get("/progress", response_model=ProgressReport)
async def get_progress(user_id: str, reporter: ProgressReporter = Depends(get_progress_reporter)):
    try:
        return await reporter.analyze_progress(user_id)
    except DataUnavailable as e:
        logger.error(f"Data unavailable while analyzing progress for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Challenge data is temporarily unavailable")


@router.post("/attempts", response_model=AttemptRecord, status_code=201)
async def submit_attempt(user_id: str, request: AttemptRequest, db: AsyncSession = Depends(get_db)):
    """Appends an attempt to the user's history."""
    try:
        attempt = await record_attempt(
            db,
            user_id=user_id,
            challenge_id=request.challenge_id,
            is_correct=request.is_correct,
            time_spent_seconds=request.time_spent_seconds,
        )
    except SQLAlchemyError as e:
        logger.error(f"Could not record attempt for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Challenge data is temporarily unavailable")
    if attempt is None:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return attempt
