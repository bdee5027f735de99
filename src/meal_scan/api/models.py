"""Pydantic request and response models for the HTTP API."""

from datetime import UTC, date, datetime
from typing import Any

from pydantic import Base64Bytes, BaseModel, Field, field_validator

from meal_scan.domain.meals import Ingredient, Meal
from meal_scan.domain.nutrients import FIELDS_BY_NAME, NutritionTier
from meal_scan.domain.progress import EvaluationProfile, ProgressSnapshot
from meal_scan.domain.stats import DailySummary, PeriodSummary


class AnalyzeImagesRequest(BaseModel):
    """Photos of one dish, base64 encoded."""

    images: list[Base64Bytes] = Field(min_length=1)
    tier: NutritionTier = NutritionTier.ESSENTIAL
    prompt: str | None = None


class AnalyzeAudioRequest(BaseModel):
    """A spoken meal description, base64 encoded."""

    audio: Base64Bytes
    mime_type: str = "audio/wav"


class IngredientSearchRequest(BaseModel):
    name: str = Field(min_length=1)
    quantity: str | None = None


class IngredientPayload(BaseModel):
    """Ingredient supplied by a client, with nutrients for its amount."""

    id: str | None = None
    name: str = Field(min_length=1)
    amount: float = Field(gt=0)
    unit: str = "g"
    nutrients: dict[str, float | None] = Field(default_factory=dict)

    @field_validator("nutrients")
    @classmethod
    def _known_nutrients(
        cls, value: dict[str, float | None]
    ) -> dict[str, float | None]:
        unknown = sorted(set(value) - set(FIELDS_BY_NAME))
        if unknown:
            raise ValueError(f"Unknown nutrients: {', '.join(unknown)}")
        return value

    def to_ingredient(self) -> Ingredient:
        return Ingredient.create(
            name=self.name,
            amount=self.amount,
            unit=self.unit,
            nutrients=self.nutrients,
            ingredient_id=self.id,
        )


class MealCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    captured_at: datetime | None = None
    ingredients: list[IngredientPayload] = Field(default_factory=list)
    notes: str | None = None

    def to_meal(self, meal_id: str) -> Meal:
        captured_at = self.captured_at or datetime.now(UTC)
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=UTC)
        return Meal(
            id=meal_id,
            name=self.name,
            captured_at=captured_at,
            ingredients=[item.to_ingredient() for item in self.ingredients],
            notes=self.notes,
        )


class MealUpdateRequest(BaseModel):
    """New name or notes for a meal; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1)
    notes: str | None = None


class AmountUpdateRequest(BaseModel):
    """New amount for an ingredient, or a reset to the analyzed amount."""

    amount: float | None = None
    reset: bool = False


class EvaluationRequest(BaseModel):
    gender: str
    age: int = Field(gt=0)
    weight_kg: float = Field(gt=0)
    gain_mode: bool = False

    def to_profile(self) -> EvaluationProfile:
        return EvaluationProfile(
            gender=self.gender,
            age=self.age,
            weight_kg=self.weight_kg,
            gain_mode=self.gain_mode,
        )


class IngredientResponse(BaseModel):
    id: str
    name: str
    amount: float
    original_amount: float
    unit: str
    min_amount: float
    max_amount: float
    nutrients: dict[str, float | None]

    @classmethod
    def from_ingredient(cls, ingredient: Ingredient) -> "IngredientResponse":
        return cls(
            id=ingredient.id,
            name=ingredient.name,
            amount=ingredient.amount,
            original_amount=ingredient.original_amount,
            unit=ingredient.unit,
            min_amount=ingredient.min_amount,
            max_amount=ingredient.max_amount,
            nutrients=ingredient.nutrients(),
        )


class MealResponse(BaseModel):
    """Meal with totals recomputed from its ingredients."""

    id: str
    name: str
    captured_at: datetime
    image_url: str | None
    confidence: float | None
    notes: str | None
    evaluation: str | None
    is_highly_processed: bool | None
    classification: str | None
    ingredients: list[IngredientResponse]
    totals: dict[str, float | None]

    @classmethod
    def from_meal(cls, meal: Meal) -> "MealResponse":
        return cls(
            id=meal.id,
            name=meal.name,
            captured_at=meal.captured_at,
            image_url=meal.image_url,
            confidence=meal.confidence,
            notes=meal.notes,
            evaluation=meal.evaluation,
            is_highly_processed=meal.is_highly_processed,
            classification=meal.classification,
            ingredients=[
                IngredientResponse.from_ingredient(item) for item in meal.ingredients
            ],
            totals=meal.totals(),
        )


class IngredientSearchResponse(BaseModel):
    dish_name: str
    ingredients: list[IngredientResponse]


class DailySummaryResponse(BaseModel):
    day: date
    meal_count: int
    calories: float
    protein: float
    carbs: float
    fat: float
    fiber: float
    sugar: float

    @classmethod
    def from_summary(cls, summary: DailySummary) -> "DailySummaryResponse":
        return cls(
            day=summary.day,
            meal_count=summary.meal_count,
            calories=summary.calories,
            protein=summary.protein,
            carbs=summary.carbs,
            fat=summary.fat,
            fiber=summary.fiber,
            sugar=summary.sugar,
        )


class WeekSummaryResponse(BaseModel):
    daily: list[DailySummaryResponse]
    avg_calories: float
    avg_protein: float
    avg_carbs: float
    avg_fat: float

    @classmethod
    def from_period(cls, period: PeriodSummary) -> "WeekSummaryResponse":
        return cls(
            daily=[DailySummaryResponse.from_summary(day) for day in period.daily],
            avg_calories=period.avg_calories,
            avg_protein=period.avg_protein,
            avg_carbs=period.avg_carbs,
            avg_fat=period.avg_fat,
        )


class ProgressResponse(BaseModel):
    cycle_start_date: date | None
    total_days_in_cycle: int
    active_days: int
    active_day_flags: list[bool]
    days_remaining: int
    is_eligible_for_evaluation: bool
    last_evaluation: dict[str, Any] | None

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot) -> "ProgressResponse":
        return cls(
            cycle_start_date=snapshot.cycle_start_date,
            total_days_in_cycle=snapshot.total_days_in_cycle,
            active_days=snapshot.active_days,
            active_day_flags=snapshot.active_day_flags,
            days_remaining=snapshot.days_remaining,
            is_eligible_for_evaluation=snapshot.is_eligible_for_evaluation,
            last_evaluation=snapshot.last_evaluation,
        )
