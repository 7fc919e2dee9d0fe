# challenge_engine/services/engine_factory.py
from challenge_engine.services.bias_exposure import BiasExposureTracker
from challenge_engine.services.performance_analyzer import PerformanceAnalyzer
from challenge_engine.services.progress import ProgressReporter
from challenge_engine.services.scoring import ScoringEngine
from challenge_engine.services.selection import SelectionEngine
from challenge_engine.state_manager import (
    SessionFactory,
    SqlBiasExposureSource,
    SqlCandidatePool,
    SqlDailySelectionStore,
    SqlHistoryReader,
)
from challenge_engine.utils.config import Settings, settings
from challenge_engine.utils.db import AsyncSessionLocal


def build_selection_engine(session_factory: SessionFactory = AsyncSessionLocal, config: Settings = settings) -> SelectionEngine:
    """Wires the SQL-backed collaborators into a SelectionEngine."""
    history_reader = SqlHistoryReader(session_factory)
    return SelectionEngine(
        history_reader=history_reader,
        candidate_pool=SqlCandidatePool(session_factory),
        exposure_tracker=BiasExposureTracker(SqlBiasExposureSource(session_factory), config),
        selection_store=SqlDailySelectionStore(session_factory),
        analyzer=PerformanceAnalyzer(history_reader, config),
        scorer=ScoringEngine(config),
        config=config,
    )


def build_progress_reporter(session_factory: SessionFactory = AsyncSessionLocal, config: Settings = settings) -> ProgressReporter:
    return ProgressReporter(PerformanceAnalyzer(SqlHistoryReader(session_factory), config), config)
