# challenge_engine/utils/db.py
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from challenge_engine.utils.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    SQLite serializes writers, so concurrent first-of-the-day inserts wait on
    the lock instead of failing fast with 'database is locked'.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo, connect_args={"timeout": 30})
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url)

# Each SQL-backed collaborator opens its own session per call, so concurrent reads never share one.
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

async def get_db() -> AsyncSession:
    """
    Request-scoped session for the endpoints that write (attempt submission).
    """
    async with AsyncSessionLocal() as session:
        yield session
