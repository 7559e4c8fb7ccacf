import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Must be set before config.get_settings() is first called
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["WAIT_FOR_DB"] = "false"
os.environ["STATIC_DIR"] = str(Path(__file__).parent / "static")

from fastapi.testclient import TestClient  # noqa: E402

from database import Base, create_all_tables, engine  # noqa: E402
from main import app  # noqa: E402
from models.survey import Survey  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402


@pytest.fixture(autouse=True)
def tables():
    create_all_tables()
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


@pytest.fixture
def add_surveys():
    """Insert surveys given as (created_at, rating) or (created_at, rating, comment) tuples."""

    def _add(*rows):
        with Session(engine) as session:
            for row in rows:
                created_at, rating, *rest = row
                if isinstance(created_at, str):
                    created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at.tzinfo is None:
                    created_at = created_at.replace(tzinfo=timezone.utc)
                session.add(
                    Survey(created_at=created_at, rating=rating, comment=rest[0] if rest else None)
                )
            session.commit()

    return _add


@pytest.fixture
def client():
    return TestClient(app)
