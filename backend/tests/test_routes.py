from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from database import build_engine
from main import app
from routers.surveys import parse_limit
from services.survey_store import SurveyStore, get_store
from services.timestamps import utc_now


@pytest.fixture
def broken_store():
    # Empty database: every query fails with a missing-relation error
    app.dependency_overrides[get_store] = lambda: SurveyStore(build_engine("sqlite://"))


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["timestamp"].endswith("Z")


def test_dashboard_is_served(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert "Survey Dashboard" in resp.text


def test_stats(client, add_surveys):
    add_surveys(*[(f"2024-01-{day:02d}T10:00:00Z", 5 if day % 2 else 3) for day in range(1, 13)])

    resp = client.get("/api/stats")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["totalSurveys"] == 12
    assert body["averageRating"] == 4.0
    assert len(body["recentSurveys"]) == 10
    assert body["recentSurveys"][0]["created_at"].startswith("2024-01-12")
    assert body["recentSurveys"][-1]["created_at"].startswith("2024-01-03")
    assert body["lastUpdated"].endswith("Z")


def test_stats_empty_store(client):
    resp = client.get("/api/stats")

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalSurveys"] == 0
    assert body["averageRating"] == 0
    assert body["recentSurveys"] == []


def test_stats_missing_rating_reports_null_average(client, add_surveys):
    add_surveys(("2024-01-01T10:00:00Z", 4), ("2024-01-02T10:00:00Z", None))

    body = client.get("/api/stats").json()

    assert body["totalSurveys"] == 2
    assert body["averageRating"] is None


def test_recent_respects_limit(client, add_surveys):
    add_surveys(*[(f"2024-02-{day:02d}T08:00:00Z", 4) for day in range(1, 9)])

    resp = client.get("/api/surveys/recent", params={"limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["count"] == 5
    assert len(body["surveys"]) == 5
    assert [s["created_at"][:10] for s in body["surveys"]] == [
        "2024-02-08", "2024-02-07", "2024-02-06", "2024-02-05", "2024-02-04",
    ]


@pytest.mark.parametrize("limit", [None, "abc", "0", "-3"])
def test_recent_falls_back_to_default_limit(client, add_surveys, limit):
    add_surveys(*[(f"2024-03-{day:02d}T08:00:00Z", 3) for day in range(1, 26)])

    params = {} if limit is None else {"limit": limit}
    body = client.get("/api/surveys/recent", params=params).json()

    assert body["count"] == 20


def test_recent_fewer_rows_than_limit(client, add_surveys):
    add_surveys(("2024-01-01T10:00:00Z", 4, "only one"))

    body = client.get("/api/surveys/recent?limit=50").json()

    assert body["count"] == 1
    assert body["surveys"][0]["comment"] == "only one"


def test_parse_limit():
    assert parse_limit("5", 20, 1000) == 5
    assert parse_limit(" 7abc", 20, 1000) == 7
    assert parse_limit("x7", 20, 1000) == 20
    assert parse_limit("", 20, 1000) == 20
    assert parse_limit(None, 20, 1000) == 20
    assert parse_limit("5000", 20, 1000) == 1000


def test_daily_rollup(client, add_surveys):
    now = utc_now()
    yesterday = (now - timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
    two_days_ago = (now - timedelta(days=2)).replace(hour=10, minute=0, second=0, microsecond=0)
    add_surveys(
        (two_days_ago, 4),
        (two_days_ago + timedelta(hours=2), 2),
        (yesterday, 5),
        (now - timedelta(days=10), 1),
    )

    resp = client.get("/api/surveys/daily")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["totalCount"] == 3
    assert body["dailyData"] == {
        two_days_ago.date().isoformat(): {"count": 2, "totalRating": 6, "avgRating": "3.00"},
        yesterday.date().isoformat(): {"count": 1, "totalRating": 5, "avgRating": "5.00"},
    }
    assert list(body["dailyData"]) == [two_days_ago.date().isoformat(), yesterday.date().isoformat()]


def test_daily_empty_window(client, add_surveys):
    add_surveys((utc_now() - timedelta(days=30), 5))

    body = client.get("/api/surveys/daily").json()

    assert body == {"success": True, "dailyData": {}, "totalCount": 0}


def test_daily_missing_rating(client, add_surveys):
    moment = (utc_now() - timedelta(days=1)).replace(hour=12, minute=0, second=0, microsecond=0)
    add_surveys((moment, None), (moment + timedelta(minutes=5), 3))

    body = client.get("/api/surveys/daily").json()

    bucket = body["dailyData"][moment.date().isoformat()]
    assert bucket == {"count": 2, "totalRating": None, "avgRating": "NaN"}


@pytest.mark.parametrize("path", ["/api/stats", "/api/surveys/recent?limit=5", "/api/surveys/daily"])
def test_store_failure_is_a_500(client, broken_store, path):
    resp = client.get(path)

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert isinstance(body["error"], str) and body["error"]


def test_unexpected_error_is_a_500():
    class ExplodingStore:
        def table(self, name):
            raise RuntimeError("connection reset by peer")

    app.dependency_overrides[get_store] = lambda: ExplodingStore()
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get("/api/surveys/recent")

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "connection reset by peer"}


def test_unknown_path_is_404(client):
    assert client.get("/api/nope").status_code == 404


def test_app_starts_and_stops():
    with TestClient(app) as started:
        assert started.get("/health").status_code == 200
