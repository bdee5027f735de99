"""Supabase repository for meals."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from meal_scan.domain.meals import Ingredient, Meal
from meal_scan.domain.nutrients import ALL_FIELDS
from meal_scan.services.meals import MealRepository

MEAL_COLUMNS = (
    "id, name, captured_at, image_url, confidence, notes, evaluation, "
    "is_highly_processed, classification, ingredients"
)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals.

    Totals are written alongside each row for querying, but meals are always
    rebuilt from their ingredients when read.
    """

    client: Client

    def save_meal(self, user_id: str, meal: Meal) -> None:
        """Insert or replace a meal row."""
        response = (
            self.client.table("meals")
            .upsert(meal_to_row(user_id, meal), on_conflict="user_id,id")
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save meal")

    def get_meal(self, user_id: str, meal_id: str) -> Meal | None:
        """Return a meal by id."""
        response = (
            self.client.table("meals")
            .select(MEAL_COLUMNS)
            .eq("user_id", user_id)
            .eq("id", meal_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return meal_from_row(response.data[0])

    def delete_meal(self, user_id: str, meal_id: str) -> None:
        self.client.table("meals").delete().eq("user_id", user_id).eq(
            "id", meal_id
        ).execute()

    def list_meals(self, user_id: str, start: datetime, end: datetime) -> list[Meal]:
        """Return meals captured in the time range."""
        response = (
            self.client.table("meals")
            .select(MEAL_COLUMNS)
            .eq("user_id", user_id)
            .gte("captured_at", start.isoformat())
            .lt("captured_at", end.isoformat())
            .order("captured_at", desc=False)
            .execute()
        )
        return [meal_from_row(row) for row in response.data or []]

    def list_all_meals(self, user_id: str) -> list[Meal]:
        response = (
            self.client.table("meals")
            .select(MEAL_COLUMNS)
            .eq("user_id", user_id)
            .order("captured_at", desc=True)
            .execute()
        )
        return [meal_from_row(row) for row in response.data or []]

    def get_first_meal_time(self, user_id: str) -> datetime | None:
        """Return the capture time of the oldest meal."""
        response = (
            self.client.table("meals")
            .select("captured_at")
            .eq("user_id", user_id)
            .order("captured_at", desc=False)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return datetime.fromisoformat(response.data[0]["captured_at"])


def meal_to_row(user_id: str, meal: Meal) -> dict[str, object]:
    return {
        "user_id": user_id,
        "id": meal.id,
        "name": meal.name,
        "captured_at": meal.captured_at.isoformat(),
        "image_url": meal.image_url,
        "confidence": meal.confidence,
        "notes": meal.notes,
        "evaluation": meal.evaluation,
        "is_highly_processed": meal.is_highly_processed,
        "classification": meal.classification,
        "total_calories": meal.total_calories,
        "total_protein": meal.total_protein,
        "total_carbs": meal.total_carbs,
        "total_fat": meal.total_fat,
        "ingredients": [ingredient_to_document(item) for item in meal.ingredients],
    }


def meal_from_row(row: dict[str, object]) -> Meal:
    confidence = row.get("confidence")
    return Meal(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        captured_at=datetime.fromisoformat(str(row["captured_at"])),
        ingredients=[
            ingredient_from_document(document)
            for document in row.get("ingredients") or []
        ],
        image_url=row.get("image_url"),
        confidence=float(confidence) if confidence is not None else None,
        notes=row.get("notes"),
        evaluation=row.get("evaluation"),
        is_highly_processed=row.get("is_highly_processed"),
        classification=row.get("classification"),
    )


def ingredient_to_document(ingredient: Ingredient) -> dict[str, object]:
    """Serialize an ingredient; unknown optional nutrients are omitted."""
    document: dict[str, object] = {
        "id": ingredient.id,
        "name": ingredient.name,
        "amount": ingredient.amount,
        "originalAmount": ingredient.original_amount,
        "unit": ingredient.unit,
    }
    for nutrient in ALL_FIELDS:
        value = ingredient.original_nutrients[nutrient.name]
        if value is None and not nutrient.required:
            continue
        document[_document_key(nutrient.name)] = value
    return document


def ingredient_from_document(document: dict[str, object]) -> Ingredient:
    original_amount = float(document.get("originalAmount") or 0.0)
    nutrients = {
        nutrient.name: _optional_float(document.get(_document_key(nutrient.name)))
        for nutrient in ALL_FIELDS
    }
    return Ingredient(
        id=str(document["id"]),
        name=str(document.get("name") or ""),
        original_amount=original_amount,
        amount=float(document.get("amount", original_amount)),
        unit=str(document.get("unit") or "g"),
        original_nutrients=nutrients,
    )


def _document_key(name: str) -> str:
    return "original" + "".join(part.capitalize() for part in name.split("_"))


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)
