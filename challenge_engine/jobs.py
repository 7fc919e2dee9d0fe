# Nightly recommendation job: python -m challenge_engine.jobs --count 3
# challenge_engine/jobs.py
import argparse
import asyncio
import sys
from datetime import timedelta

from challenge_engine.errors import DataUnavailable
from challenge_engine.services.batch import BatchResult, generate_recommendations
from challenge_engine.services.engine_factory import build_selection_engine
from challenge_engine.state_manager import list_active_user_ids
from challenge_engine.utils.clock import utcnow
from challenge_engine.utils.config import settings
from challenge_engine.utils.db import engine as db_engine
from challenge_engine.utils.logger import logger


async def run_nightly_recommendations(count: int, concurrency: int) -> BatchResult:
    now = utcnow()
    user_ids = await list_active_user_ids(now - timedelta(days=settings.performance_window_days))
    logger.info(f"Generating {count} recommendations each for {len(user_ids)} active users (concurrency={concurrency}).")
    try:
        return await generate_recommendations(build_selection_engine(), user_ids, count, now, concurrency)
    finally:
        await db_engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate challenge recommendations for every active user.")
    parser.add_argument("--count", type=int, default=settings.default_recommendation_count,
                        help="Recommendations per user")
    parser.add_argument("--concurrency", type=int, default=settings.batch_concurrency,
                        help="Maximum users processed at once")
    args = parser.parse_args(argv)
    if args.count < 1 or args.concurrency < 1:
        parser.error("--count and --concurrency must be at least 1")

    try:
        result = asyncio.run(run_nightly_recommendations(args.count, args.concurrency))
    except DataUnavailable as e:
        logger.error(f"Nightly recommendations aborted: {e}")
        return 2

    for user_id, reason in result.failed.items():
        logger.warning(f"  {user_id}: {reason}")
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
