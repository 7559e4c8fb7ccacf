"""In-memory rollups over survey rows.

Both helpers are pure: they take the rows a query returned and compute the
summary numbers the dashboard shows. Ratings are not validated; a missing
rating turns the affected totals into NaN instead of raising.
"""

import math
from typing import Any, Iterable, Mapping, Sequence


def _rating(value: Any) -> float | int:
    return math.nan if value is None else value


def format_two_places(value: float) -> str:
    """Fixed two-decimal rendering (ties round to even on the exact binary value)."""
    if math.isnan(value):
        return "NaN"
    return f"{value:.2f}"


def aggregate_by_day(records: Sequence[Mapping[str, Any]]) -> tuple[dict[str, dict], int]:
    """Group rows by the UTC date prefix of ``created_at``.

    Returns ``(buckets, total_count)`` where ``buckets`` maps ``YYYY-MM-DD`` to
    ``{"count", "totalRating", "avgRating"}`` in order of first appearance.
    """
    daily: dict[str, dict] = {}
    for record in records:
        date = record["created_at"][:10]
        if date not in daily:
            daily[date] = {"count": 0, "totalRating": 0}
        daily[date]["count"] += 1
        daily[date]["totalRating"] += _rating(record.get("rating"))

    for bucket in daily.values():
        bucket["avgRating"] = format_two_places(bucket["totalRating"] / bucket["count"])

    return daily, len(records)


def average(ratings: Iterable[Any]) -> float:
    """Mean rating rounded to two places; 0 when there is nothing to average."""
    values = [_rating(r) for r in ratings]
    if not values:
        return 0
    return float(format_two_places(sum(values) / len(values)))
