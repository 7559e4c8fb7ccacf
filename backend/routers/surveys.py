import math
import re
from datetime import timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, field_validator

from config import get_settings
from rate_limit import limiter
from services.aggregation import aggregate_by_day
from services.survey_store import SurveyStore, get_store
from services.timestamps import utc_now

settings = get_settings()

router = APIRouter(prefix="/api/surveys", tags=["surveys"])

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# --- Pydantic Schemas ---

class RecentSurveysResponse(BaseModel):
    success: bool = True
    surveys: list[dict[str, Any]]
    count: int


class DailyBucket(BaseModel):
    count: int
    totalRating: int | float | None
    avgRating: str

    @field_validator("totalRating")
    @classmethod
    def nan_to_null(cls, value):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value


class DailySurveysResponse(BaseModel):
    success: bool = True
    dailyData: dict[str, DailyBucket]
    totalCount: int


# --- Helpers ---

def parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    """Lenient ``limit`` parsing: leading digits win, junk or non-positive falls back to *default*."""
    match = _LEADING_INT.match(raw or "")
    if not match:
        return default
    value = int(match.group(1))
    if value <= 0:
        return default
    return min(value, maximum)


# --- Routes ---

@router.get("/recent", response_model=RecentSurveysResponse)
@limiter.limit(settings.RATE_LIMIT)
def recent_surveys(
    request: Request,
    limit: Optional[str] = Query(default=None, description="Max rows to return"),
    store: SurveyStore = Depends(get_store),
):
    n = parse_limit(limit, settings.RECENT_DEFAULT_LIMIT, settings.RECENT_MAX_LIMIT)
    result = (
        store.table(settings.SURVEYS_TABLE)
        .select("*")
        .order("created_at", desc=True)
        .limit(n)
        .execute()
        .raise_for_error()
    )
    return RecentSurveysResponse(surveys=result.data, count=len(result.data))


@router.get("/daily", response_model=DailySurveysResponse)
@limiter.limit(settings.RATE_LIMIT)
def daily_surveys(request: Request, store: SurveyStore = Depends(get_store)):
    """Per-day count and mean rating over the last DAILY_WINDOW_DAYS days."""
    since = utc_now() - timedelta(days=settings.DAILY_WINDOW_DAYS)
    result = (
        store.table(settings.SURVEYS_TABLE)
        .select("created_at, rating")
        .gte("created_at", since)
        .order("created_at")
        .execute()
        .raise_for_error()
    )
    daily, total = aggregate_by_day(result.data)
    return DailySurveysResponse(dailyData=daily, totalCount=total)
