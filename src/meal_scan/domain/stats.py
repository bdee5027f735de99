"""Domain models for statistics."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DailySummary:
    """Daily totals recomputed from meal ingredients."""

    day: date
    meal_count: int
    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: float
    sugar: float


@dataclass(frozen=True)
class PeriodSummary:
    """Daily summaries with averages over the period."""

    daily: list[DailySummary]
    avg_calories: float
    avg_protein: float
    avg_carbs: float
    avg_fat: float


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the UTC bounds of a local calendar day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def local_day(moment: datetime, tz: ZoneInfo) -> date:
    return moment.astimezone(tz).date()
