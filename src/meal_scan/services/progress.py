"""Progress cycle persistence and evaluation."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from meal_scan.domain.extraction import ExtractionFailure, ValueShape
from meal_scan.domain.meals import Meal
from meal_scan.domain.progress import (
    CYCLE_DAYS,
    EVALUATION_CYCLE_KEY,
    EvaluationProfile,
    ProgressData,
    ProgressSnapshot,
    advance_cycle,
    build_snapshot,
    date_key,
    empty_snapshot,
    mark_active,
)
from meal_scan.domain.stats import day_bounds, local_day
from meal_scan.services.analysis import AnalysisService
from meal_scan.services.meals import MealRepository
from meal_scan.services.nutrients import first_number, first_text
from meal_scan.services.stats import meals_on, summarize_day

FALLBACK_SCORE = 5

EVALUATION_TEXT_FIELDS: dict[str, tuple[str, ...]] = {
    "overall_progress": ("overallprogress", "overall_progress"),
    "strengths": ("strengths",),
    "improvements": ("improvements",),
    "meal_timing_feedback": ("mealtimingfeedback", "meal_timing_feedback"),
}
SCORE_KEYS = ("progressscore", "progress_score", "score")

_logger = logging.getLogger(__name__)


class ProgressRepository(Protocol):
    """Persistence interface for the per-user progress document."""

    def get_progress(self, user_id: str) -> ProgressData:
        """Return stored progress, or empty progress when none exists."""

    def save_progress(self, user_id: str, data: ProgressData) -> None:
        """Replace the stored progress."""


@dataclass
class ProgressService:
    """Track the twenty-day cycle and run its evaluation."""

    repository: ProgressRepository
    meal_repository: MealRepository
    analysis_service: AnalysisService
    timezone: str = "UTC"

    def today(self) -> date:
        return datetime.now(tz=ZoneInfo(self.timezone)).date()

    def compute_snapshot(
        self, user_id: str, today: date | None = None
    ) -> ProgressSnapshot:
        """Advance the cycle if due and recompute its active days.

        Progress is written only when the cycle changed or the recomputed
        active-day set differs from the stored one.
        """
        tz = ZoneInfo(self.timezone)
        today = today or self.today()
        data = self.repository.get_progress(user_id)

        first_meal_day = None
        if data.cycle_start_date is None:
            first_meal_time = self.meal_repository.get_first_meal_time(user_id)
            if first_meal_time is None:
                return empty_snapshot(data)
            first_meal_day = local_day(first_meal_time, tz)

        advanced = advance_cycle(data, first_meal_day, today)
        if advanced != data:
            _logger.info(
                "Progress cycle started: user=%s start=%s",
                user_id,
                advanced.cycle_start_date,
            )
            self.repository.save_progress(user_id, advanced)

        meals = self._cycle_meals(user_id, advanced)
        snapshot, updated = build_snapshot(
            advanced, [local_day(meal.captured_at, tz) for meal in meals], today
        )
        if set(updated.active_days) != set(advanced.active_days):
            self.repository.save_progress(user_id, updated)
        return snapshot

    def mark_today_active(self, user_id: str, today: date | None = None) -> None:
        """Add today to the active days, starting a cycle when needed."""
        data = self.repository.get_progress(user_id)
        updated = mark_active(data, today or self.today())
        if updated != data:
            self.repository.save_progress(user_id, updated)

    async def run_evaluation(
        self, user_id: str, profile: EvaluationProfile
    ) -> dict[str, object] | None:
        """Evaluate the current cycle and store it as the last evaluation.

        Returns None when the user has no cycle yet.
        """
        data = self.repository.get_progress(user_id)
        if data.cycle_start_date is None:
            return None

        tz = ZoneInfo(self.timezone)
        meals = self._cycle_meals(user_id, data)
        active_days = len(data.active_days)
        request = {
            "user_profile": {
                "gender": profile.gender,
                "age": profile.age,
                "weight_kg": profile.weight_kg,
                "goal": profile.goal,
            },
            "active_days": active_days,
            "daily_summaries": [
                _daily_summary(day, meals, tz) for day in data.cycle_days()
            ],
        }
        raw = await self.analysis_service.evaluate_progress(request)

        evaluation = self._parse_evaluation(raw)
        evaluation["evaluated_at"] = datetime.now(UTC).isoformat()
        evaluation["active_days"] = active_days
        evaluation[EVALUATION_CYCLE_KEY] = date_key(data.cycle_start_date)
        self.repository.save_progress(
            user_id, replace(data, last_evaluation=evaluation)
        )
        _logger.info(
            "Progress evaluated: user=%s cycle=%s score=%s",
            user_id,
            data.cycle_start_date,
            evaluation["progress_score"],
        )
        return evaluation

    def _cycle_meals(self, user_id: str, data: ProgressData) -> list[Meal]:
        if data.cycle_start_date is None:
            return []
        tz = ZoneInfo(self.timezone)
        start, _ = day_bounds(data.cycle_start_date, tz)
        end, _ = day_bounds(data.cycle_start_date + timedelta(days=CYCLE_DAYS), tz)
        return self.meal_repository.list_meals(user_id, start, end)

    def _parse_evaluation(self, raw: str) -> dict[str, object]:
        parsed = self.analysis_service.canonicalizer.extract(raw)
        if (
            isinstance(parsed, ExtractionFailure)
            or parsed.shape is not ValueShape.OBJECT
        ):
            _logger.warning("Progress evaluation was not JSON; keeping raw text")
            return {
                "overall_progress": raw,
                "strengths": "",
                "improvements": "",
                "meal_timing_feedback": "",
                "progress_score": FALLBACK_SCORE,
            }

        bag = parsed.bag
        evaluation: dict[str, object] = {
            name: first_text(bag, keys) or ""
            for name, keys in EVALUATION_TEXT_FIELDS.items()
        }
        score = first_number(bag, SCORE_KEYS)
        evaluation["progress_score"] = FALLBACK_SCORE if score is None else round(score)
        return evaluation


def _daily_summary(day: date, meals: list[Meal], tz: ZoneInfo) -> dict[str, object]:
    summary = summarize_day(day, meals, tz)
    details = "; ".join(
        "{} {} ({})".format(
            meal.captured_at.astimezone(tz).strftime("%H:%M"),
            meal.name,
            ", ".join(ingredient.name for ingredient in meal.ingredients),
        )
        for meal in meals_on(day, meals, tz)
    )
    return {
        "date": date_key(day),
        "meal_count": summary.meal_count,
        "calories": round(summary.calories),
        "protein": round(summary.protein),
        "carbs": round(summary.carbs),
        "fat": round(summary.fat),
        "fiber": round(summary.fiber),
        "sugar": round(summary.sugar),
        "meal_details": details or "No meals",
    }
