"""Meal persistence orchestration."""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from meal_scan.domain.analysis import Rejected
from meal_scan.domain.extraction import ExtractionFailure
from meal_scan.domain.meals import Ingredient, Meal
from meal_scan.domain.nutrients import NutritionTier
from meal_scan.domain.stats import day_bounds
from meal_scan.services.analysis import AnalysisOutcome, AnalysisService
from meal_scan.services.images import ImageProcessor

JPEG_CONTENT_TYPE = "image/jpeg"

_logger = logging.getLogger(__name__)


class MealNotFoundError(KeyError):
    """Raised when a meal does not exist for the user."""


class MealRepository(Protocol):
    """Persistence interface for meals."""

    def save_meal(self, user_id: str, meal: Meal) -> None:
        """Insert or replace a meal."""

    def get_meal(self, user_id: str, meal_id: str) -> Meal | None:
        """Return a meal by id."""

    def delete_meal(self, user_id: str, meal_id: str) -> None:
        """Delete a meal by id."""

    def list_meals(self, user_id: str, start: datetime, end: datetime) -> list[Meal]:
        """Return meals captured in [start, end), oldest first."""

    def list_all_meals(self, user_id: str) -> list[Meal]:
        """Return every meal of the user, newest first."""

    def get_first_meal_time(self, user_id: str) -> datetime | None:
        """Return the capture time of the user's oldest meal."""


class ImageStore(Protocol):
    """Blob storage for meal photos."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at a path and return their public URL."""

    def delete(self, path: str) -> None:
        """Remove a stored object."""


class ActivityTracker(Protocol):
    """Receives a notification after each saved meal."""

    def mark_today_active(self, user_id: str) -> None:
        """Record today as an active day."""


def meal_image_path(user_id: str, meal_id: str) -> str:
    return f"users/{user_id}/meals/{meal_id}.jpg"


def rejected_image_path(user_id: str, image_id: str) -> str:
    return f"users/{user_id}/rejected/{image_id}.jpg"


@dataclass
class MealService:
    """Analyze, store and edit meals for a user."""

    repository: MealRepository
    image_store: ImageStore
    analysis_service: AnalysisService
    activity_tracker: ActivityTracker
    image_processor: ImageProcessor = field(default_factory=ImageProcessor)
    timezone: str = "UTC"

    async def scan_meal(
        self,
        user_id: str,
        images: list[bytes],
        tier: NutritionTier = NutritionTier.ESSENTIAL,
        prompt: str | None = None,
    ) -> Meal | Rejected | ExtractionFailure:
        """Analyze photos of a dish and save the resulting meal.

        Rejections and extraction failures are returned without saving
        anything.
        """
        if not images:
            raise ValueError("No images provided")
        processed = await self.image_processor.process_many(images)
        outcome = await self.analysis_service.analyze_images(processed, tier, prompt)
        return self._save_outcome(user_id, outcome, image=processed[0])

    async def describe_meal(
        self, user_id: str, audio: bytes, mime_type: str = "audio/wav"
    ) -> Meal | Rejected | ExtractionFailure:
        """Analyze a spoken meal description and save the resulting meal."""
        outcome = await self.analysis_service.analyze_audio(audio, mime_type)
        return self._save_outcome(user_id, outcome)

    def save_meal(self, user_id: str, meal: Meal, image: bytes | None = None) -> Meal:
        """Upload the photo, persist the meal and mark today active."""
        if image is not None:
            meal.image_url = self.image_store.upload(
                meal_image_path(user_id, meal.id), image, JPEG_CONTENT_TYPE
            )
        self.repository.save_meal(user_id, meal)
        _logger.info(
            "Meal saved: user=%s meal=%s ingredients=%d",
            user_id,
            meal.id,
            len(meal.ingredients),
        )
        self.activity_tracker.mark_today_active(user_id)
        return meal

    def get_meal(self, user_id: str, meal_id: str) -> Meal:
        meal = self.repository.get_meal(user_id, meal_id)
        if meal is None:
            raise MealNotFoundError(meal_id)
        return meal

    def list_meals_for_day(self, user_id: str, day: date | None = None) -> list[Meal]:
        """Return the meals captured on a local day, oldest first."""
        tz = ZoneInfo(self.timezone)
        day = day or datetime.now(tz=tz).date()
        start, end = day_bounds(day, tz)
        return self.repository.list_meals(user_id, start, end)

    def update_meal_details(
        self,
        user_id: str,
        meal_id: str,
        name: str | None = None,
        notes: str | None = None,
    ) -> Meal:
        """Rename a meal or replace its notes."""
        meal = self.get_meal(user_id, meal_id)
        if name is not None:
            meal.name = name
        if notes is not None:
            meal.notes = notes or None
        self.repository.save_meal(user_id, meal)
        return meal

    def delete_meal(self, user_id: str, meal_id: str) -> None:
        """Delete the meal record, then its photo."""
        meal = self.get_meal(user_id, meal_id)
        self.repository.delete_meal(user_id, meal_id)
        if meal.image_url:
            self.image_store.delete(meal_image_path(user_id, meal_id))

    def add_ingredient(
        self, user_id: str, meal_id: str, ingredient: Ingredient
    ) -> Meal:
        meal = self.get_meal(user_id, meal_id)
        meal.add_ingredient(ingredient)
        self.repository.save_meal(user_id, meal)
        return meal

    def update_ingredient_amount(
        self, user_id: str, meal_id: str, ingredient_id: str, amount: float
    ) -> Meal:
        """Change one ingredient's amount; totals follow on the next read."""
        meal = self.get_meal(user_id, meal_id)
        meal.update_ingredient_amount(ingredient_id, amount)
        self.repository.save_meal(user_id, meal)
        return meal

    def reset_ingredient_amount(
        self, user_id: str, meal_id: str, ingredient_id: str
    ) -> Meal:
        meal = self.get_meal(user_id, meal_id)
        meal.get_ingredient(ingredient_id).reset_amount()
        self.repository.save_meal(user_id, meal)
        return meal

    def remove_ingredient(self, user_id: str, meal_id: str, ingredient_id: str) -> Meal:
        meal = self.get_meal(user_id, meal_id)
        meal.get_ingredient(ingredient_id)
        meal.remove_ingredient(ingredient_id)
        self.repository.save_meal(user_id, meal)
        return meal

    def keep_rejected_image(self, user_id: str, rejected: Rejected) -> str | None:
        """Store a rejected photo for later diagnostics."""
        if not rejected.original_input:
            return None
        image_id = f"nofood_{int(datetime.now(UTC).timestamp() * 1_000_000)}"
        url = self.image_store.upload(
            rejected_image_path(user_id, image_id),
            rejected.original_input,
            JPEG_CONTENT_TYPE,
        )
        _logger.info(
            "Rejected image kept: user=%s classification=%s",
            user_id,
            rejected.classification.value,
        )
        return url

    def export_csv(self, user_id: str) -> str:
        """Return every meal as CSV with recomputed totals."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(
            [
                "Date",
                "Time",
                "Name",
                "Calories",
                "Protein (g)",
                "Carbs (g)",
                "Fat (g)",
                "Fiber (g)",
                "Sugar (g)",
            ]
        )
        tz = ZoneInfo(self.timezone)
        for meal in self.repository.list_all_meals(user_id):
            local = meal.captured_at.astimezone(tz)
            writer.writerow(
                [
                    local.strftime("%Y-%m-%d"),
                    local.strftime("%H:%M"),
                    meal.name,
                    round(meal.total_calories),
                    round(meal.total_protein),
                    round(meal.total_carbs),
                    round(meal.total_fat),
                    round(meal.total_fiber),
                    round(meal.total_sugar),
                ]
            )
        return buffer.getvalue()

    def _save_outcome(
        self, user_id: str, outcome: AnalysisOutcome, image: bytes | None = None
    ) -> Meal | Rejected | ExtractionFailure:
        if isinstance(outcome, Rejected | ExtractionFailure):
            return outcome
        meal = Meal.from_analysis(outcome, captured_at=datetime.now(UTC))
        return self.save_meal(user_id, meal, image=image)
