"""Statistics service for meals."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from meal_scan.domain.meals import Meal
from meal_scan.domain.stats import (
    DailySummary,
    PeriodSummary,
    day_bounds,
    local_day,
)
from meal_scan.services.meals import MealRepository

WEEK_DAYS = 7


@dataclass
class StatsService:
    """Service for computing user stats in a timezone."""

    repository: MealRepository
    timezone: str = "UTC"

    def today(self) -> date:
        return datetime.now(tz=ZoneInfo(self.timezone)).date()

    def get_day(self, user_id: str, day: date | None = None) -> DailySummary:
        """Return the totals of one local day."""
        tz = ZoneInfo(self.timezone)
        day = day or self.today()
        start, end = day_bounds(day, tz)
        meals = self.repository.list_meals(user_id, start, end)
        return summarize_day(day, meals, tz)

    def get_week(self, user_id: str, week_start: date | None = None) -> PeriodSummary:
        """Return seven daily summaries from a single range query.

        The week starts on Monday of the current week unless given.
        """
        tz = ZoneInfo(self.timezone)
        if week_start is None:
            today = self.today()
            week_start = today - timedelta(days=today.weekday())
        start, _ = day_bounds(week_start, tz)
        _, end = day_bounds(week_start + timedelta(days=WEEK_DAYS - 1), tz)
        meals = self.repository.list_meals(user_id, start, end)
        return _aggregate_period(week_start, WEEK_DAYS, meals, tz)


def meals_on(day: date, meals: Iterable[Meal], tz: ZoneInfo) -> list[Meal]:
    return [meal for meal in meals if local_day(meal.captured_at, tz) == day]


def summarize_day(day: date, meals: Iterable[Meal], tz: ZoneInfo) -> DailySummary:
    """Sum the recomputed totals of the meals captured on a local day."""
    day_meals = meals_on(day, meals, tz)
    return DailySummary(
        day=day,
        meal_count=len(day_meals),
        calories=sum((meal.total_calories for meal in day_meals), 0.0),
        protein=sum((meal.total_protein for meal in day_meals), 0.0),
        carbs=sum((meal.total_carbs for meal in day_meals), 0.0),
        fat=sum((meal.total_fat for meal in day_meals), 0.0),
        fiber=sum((meal.total_fiber for meal in day_meals), 0.0),
        sugar=sum((meal.total_sugar for meal in day_meals), 0.0),
    )


def _aggregate_period(
    start: date, days: int, meals: list[Meal], tz: ZoneInfo
) -> PeriodSummary:
    daily = [
        summarize_day(start + timedelta(days=offset), meals, tz)
        for offset in range(days)
    ]
    total_days = max(len(daily), 1)
    return PeriodSummary(
        daily=daily,
        avg_calories=sum(entry.calories for entry in daily) / total_days,
        avg_protein=sum(entry.protein for entry in daily) / total_days,
        avg_carbs=sum(entry.carbs for entry in daily) / total_days,
        avg_fat=sum(entry.fat for entry in daily) / total_days,
    )
