# Bounded fan-out of recommendations across many users (nightly job)
# challenge_engine/services/batch.py
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from challenge_engine.errors import ChallengeEngineError
from challenge_engine.models.challenge import ChallengeCandidate
from challenge_engine.services.selection import SelectionEngine
from challenge_engine.utils.clock import as_utc, utcnow
from challenge_engine.utils.config import settings
from challenge_engine.utils.logger import logger


@dataclass
class BatchResult:
    successful: Dict[str, List[ChallengeCandidate]] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)


async def generate_recommendations(
    engine: SelectionEngine,
    user_ids: Iterable[str],
    count: Optional[int] = None,
    now: Optional[datetime] = None,
    concurrency: Optional[int] = None,
) -> BatchResult:
    """
    Runs `recommend` for every user with at most `concurrency` in flight.
    A failing user is recorded and the batch carries on.
    """
    count = count or settings.default_recommendation_count
    concurrency = concurrency or settings.batch_concurrency
    now = as_utc(now or utcnow())
    semaphore = asyncio.Semaphore(concurrency)
    result = BatchResult()

    async def run_one(user_id: str) -> None:
        async with semaphore:
            try:
                result.successful[user_id] = await engine.recommend(user_id, count, now)
            except ChallengeEngineError as e:
                logger.warning(f"Recommendations failed for user {user_id}: {type(e).__name__}: {e}")
                result.failed[user_id] = f"{type(e).__name__}: {e}"
            except Exception as e:
                logger.exception(f"Unexpected error generating recommendations for user {user_id}: {e}")
                result.failed[user_id] = f"{type(e).__name__}: {e}"

    await asyncio.gather(*(run_one(user_id) for user_id in dict.fromkeys(user_ids)))
    logger.info(f"Batch recommendations complete: {len(result.successful)} succeeded, {len(result.failed)} failed.")
    return result
