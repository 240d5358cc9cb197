from datetime import datetime
from pathlib import Path

from sqlalchemy import BigInteger, Column, DateTime, Integer, JSON, String, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings
from utils.logger import get_logger

logger = get_logger("database")

Base = declarative_base()


# ==================== LEADERBOARD CACHE ====================


class LeaderboardCacheEntry(Base):
    """Single cached leaderboard snapshot, replaced wholesale on every write."""

    __tablename__ = "leaderboard_cache"

    key = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)  # {"rankings": [...], "computedAt": ms}
    computed_at_ms = Column(BigInteger, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ==================== SEASON HISTORY ====================


class SeasonWinnerRecord(Base):
    """Winner of the most recently completed season."""

    __tablename__ = "season_winner"

    id = Column(String, primary_key=True, default="previous")
    season_id = Column(Integer, nullable=False)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ==================== DATABASE SETUP ====================

_engine_kw: dict = {"echo": False}
if "sqlite" in settings.DATABASE_URL:
    _engine_kw["connect_args"] = {"timeout": 30}  # Wait up to 30s when DB is locked

async_engine = create_async_engine(settings.DATABASE_URL, **_engine_kw)


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """WAL lets cache reads proceed while a recompute writes."""
    if "sqlite" not in settings.DATABASE_URL:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


event.listens_for(async_engine.sync_engine, "connect")(_set_sqlite_pragma)

AsyncSessionLocal = sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return
    database = url.database or ""
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


async def init_database():
    """Create the leaderboard tables if they do not exist yet."""
    _ensure_sqlite_directory(settings.DATABASE_URL)
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized", url=str(async_engine.url))

