# challenge_engine/services/challenge_catalog.py
import csv
import json
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from challenge_engine.errors import DataUnavailable
from challenge_engine.models.challenge import ChallengeCandidate
from challenge_engine.models.tables import Challenge
from challenge_engine.state_manager import SessionFactory
from challenge_engine.utils.clock import to_naive_utc, utcnow
from challenge_engine.utils.db import AsyncSessionLocal
from challenge_engine.utils.logger import logger

_TRUE_VALUES = {"1", "true", "yes", "y"}


def _parse_datetime(raw: Optional[str]) -> Optional[datetime]:
    raw = (raw or "").strip()
    return datetime.fromisoformat(raw) if raw else None


def load_challenges(csv_path: str) -> List[ChallengeCandidate]:
    """
    Reads a challenge catalog CSV with columns
    id, type, difficulty, estimated_seconds, viewpoints, is_active, created_at, expires_at.
    `viewpoints` is a JSON list such as '["left", "right"]'. Bad rows are logged and skipped.
    """
    candidates: List[ChallengeCandidate] = []
    with open(csv_path, mode="r", encoding="utf-8") as csvfile:
        reader = csv.DictReader(csvfile)
        for row in reader:
            try:
                viewpoints_raw = (row.get("viewpoints") or "").strip()
                viewpoints = json.loads(viewpoints_raw) if viewpoints_raw else []
                if not isinstance(viewpoints, list):
                    logger.warning(f"Viewpoints for challenge {row['id']} are not a list, defaulting to empty.")
                    viewpoints = []

                is_active_raw = (row.get("is_active") or "true").strip().lower()
                candidate = ChallengeCandidate(
                    id=row["id"].strip(),
                    type=row["type"].strip(),
                    difficulty=row["difficulty"].strip(),
                    estimated_seconds=int(row["estimated_seconds"]),
                    viewpoints=viewpoints,
                    is_active=is_active_raw in _TRUE_VALUES,
                    created_at=_parse_datetime(row.get("created_at")) or utcnow(),
                    expires_at=_parse_datetime(row.get("expires_at")),
                )
                candidates.append(candidate)
            except json.JSONDecodeError:
                logger.error(f"Skipping row due to invalid JSON in 'viewpoints': {row}")
            except ValidationError as ve:
                logger.error(f"Skipping row due to invalid values: {row} - Error: {ve}")
            except ValueError as ve:
                logger.error(f"Skipping row due to ValueError: {row} - Error: {ve}")
            except KeyError as ke:
                logger.error(f"Skipping row due to missing key: {row} - Missing Key: {ke}")

    logger.info(f"Loaded {len(candidates)} challenges from {csv_path}.")
    if not candidates:
        logger.warning(f"No challenges loaded from {csv_path}. Check the file format and content.")
    return candidates


async def seed_challenges(candidates: List[ChallengeCandidate], session_factory: SessionFactory = AsyncSessionLocal) -> int:
    """Inserts the candidates that are not stored yet. Published challenges are never updated."""
    try:
        async with session_factory() as session:
            result = await session.execute(select(Challenge.id))
            existing = set(result.scalars().all())
            added = 0
            for candidate in candidates:
                if candidate.id in existing:
                    continue
                session.add(Challenge(
                    id=candidate.id,
                    type=candidate.type.value,
                    difficulty=candidate.difficulty.value,
                    estimated_seconds=candidate.estimated_seconds,
                    viewpoints=sorted(v.value for v in candidate.viewpoints),
                    is_active=candidate.is_active,
                    created_at=to_naive_utc(candidate.created_at),
                    expires_at=to_naive_utc(candidate.expires_at) if candidate.expires_at else None,
                ))
                existing.add(candidate.id)
                added += 1
            await session.commit()
    except SQLAlchemyError as e:
        raise DataUnavailable("Could not seed the challenge catalog") from e

    logger.info(f"Seeded {added} new challenges ({len(candidates) - added} already present).")
    return added
