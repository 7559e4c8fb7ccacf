"""Dashboard headline numbers."""

import math
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, field_validator

from config import get_settings
from rate_limit import limiter
from services.aggregation import average
from services.survey_store import SurveyStore, get_store
from services.timestamps import iso_timestamp

settings = get_settings()

router = APIRouter(prefix="/api", tags=["stats"])


# --- Pydantic Schemas ---

class StatsResponse(BaseModel):
    success: bool = True
    totalSurveys: int
    averageRating: int | float | None
    recentSurveys: list[dict[str, Any]]
    lastUpdated: str

    @field_validator("averageRating")
    @classmethod
    def nan_to_null(cls, value):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value


# --- Routes ---

@router.get("/stats", response_model=StatsResponse)
@limiter.limit(settings.RATE_LIMIT)
def get_stats(request: Request, store: SurveyStore = Depends(get_store)):
    """Total count, mean rating and the newest rows. Any failing query fails the request."""
    table = settings.SURVEYS_TABLE

    total = (
        store.table(table)
        .select("*", count="exact", head=True)
        .execute()
        .raise_for_error()
    )
    recent = (
        store.table(table)
        .select("*")
        .order("created_at", desc=True)
        .limit(settings.STATS_RECENT_LIMIT)
        .execute()
        .raise_for_error()
    )
    ratings = store.table(table).select("rating").execute().raise_for_error()

    return StatsResponse(
        totalSurveys=total.count or 0,
        averageRating=average(row.get("rating") for row in ratings.data),
        recentSurveys=recent.data,
        lastUpdated=iso_timestamp(),
    )
