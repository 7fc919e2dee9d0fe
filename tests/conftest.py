# tests/conftest.py
import logging
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Keep test runs off the on-disk default database; must happen before the engine is created
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from challenge_engine.main import app
from challenge_engine.models.tables import Base
from challenge_engine.services.bias_exposure import BiasExposureTracker
from challenge_engine.services.performance_analyzer import PerformanceAnalyzer
from challenge_engine.services.progress import ProgressReporter
from challenge_engine.services.selection import SelectionEngine
from challenge_engine.utils.config import Settings
from challenge_engine.utils.db import build_engine
from fakes import FakeCandidatePool, FakeExposureSource, FakeHistoryReader, InMemorySelectionStore


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def history() -> FakeHistoryReader:
    return FakeHistoryReader()


@pytest.fixture
def pool() -> FakeCandidatePool:
    return FakeCandidatePool()


@pytest.fixture
def exposure_source(history) -> FakeExposureSource:
    return FakeExposureSource(history)


@pytest.fixture
def store() -> InMemorySelectionStore:
    return InMemorySelectionStore()


@pytest.fixture
def selection_engine(history, pool, exposure_source, store, config) -> SelectionEngine:
    return SelectionEngine(
        history_reader=history,
        candidate_pool=pool,
        exposure_tracker=BiasExposureTracker(exposure_source, config),
        selection_store=store,
        config=config,
    )


@pytest.fixture
def reporter(history, config) -> ProgressReporter:
    return ProgressReporter(PerformanceAnalyzer(history, config), config)


# --- Temporary SQLite database for the SQL-backed collaborators ---
@pytest.fixture
async def sql_session_factory(tmp_path):
    db_path = tmp_path / "challenge_engine_test.db"
    logger.info(f"Creating test database at {db_path}")
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


# --- FastAPI client; tests install their own dependency overrides ---
@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
