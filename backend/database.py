import time
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine(url: str) -> Engine:
    """Create an engine for *url*.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)


class Base(DeclarativeBase):
    pass


def wait_for_db(max_retries: int = 30, delay: float = 2.0, bind: Engine | None = None):
    """Wait for the database to become available."""
    bind = bind or engine
    for attempt in range(1, max_retries + 1):
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established.")
            return
        except Exception as e:
            logger.warning(f"DB not ready (attempt {attempt}/{max_retries}): {e}")
            if attempt < max_retries:
                time.sleep(delay)
    raise RuntimeError("Could not connect to database after retries")


def create_all_tables(bind: Engine | None = None):
    import models  # noqa: F401 - registers Survey on Base.metadata
    Base.metadata.create_all(bind=bind or engine)
