# challenge_engine/services/bias_exposure.py
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from challenge_engine.models.challenge import BiasExposureProfile, ExposureCounts
from challenge_engine.models.enums import Viewpoint
from challenge_engine.services.interfaces import BiasExposureSource
from challenge_engine.utils.clock import as_utc
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.logger import logger


class BiasExposureTracker:
    def __init__(self, source: BiasExposureSource, config: Settings = settings):
        self.source = source
        self.config = config

    async def exposure(self, user_id: str, now: datetime) -> BiasExposureProfile:
        since = as_utc(now) - timedelta(days=self.config.bias_lookback_days)
        counts, lean = await asyncio.gather(
            self.source.get_exposure(user_id, since),
            self.source.get_political_lean(user_id),
        )
        return self.build_profile(user_id, counts, lean)

    def build_profile(self, user_id: str, counts: ExposureCounts, political_lean: Optional[float] = None) -> BiasExposureProfile:
        total = sum(counts.by_viewpoint.values())
        shares = {
            viewpoint: (counts.by_viewpoint.get(viewpoint, 0) / total if total else 0.0)
            for viewpoint in Viewpoint
        }

        if counts.attempts == 0:
            # Uniform prior: nothing seen yet, so every viewpoint is worth surfacing
            underexposed = set(Viewpoint)
        elif counts.attempts < self.config.min_bias_attempts:
            underexposed = set()
        else:
            underexposed = {v for v, share in shares.items() if share < self.config.underexposed_share_threshold}

        logger.debug(
            f"Bias exposure for {user_id}: attempts={counts.attempts}, "
            f"underexposed={sorted(v.value for v in underexposed)}"
        )
        return BiasExposureProfile(
            user_id=user_id,
            attempts=counts.attempts,
            counts=dict(counts.by_viewpoint),
            shares=shares,
            underexposed=underexposed,
            political_lean=political_lean,
        )
