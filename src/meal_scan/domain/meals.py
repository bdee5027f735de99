"""Ingredient and meal models with derived nutrient totals.

An ingredient keeps the nutrient vector estimated for its original amount and
derives every current value from the ratio between the adjustable amount and
that original amount. Meals never store totals; they sum the current
ingredient values on every read.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING
from uuid import uuid4

from meal_scan.domain.nutrients import (
    ALL_FIELDS,
    FIELDS_BY_NAME,
    REQUIRED_NAMES,
)

if TYPE_CHECKING:
    from meal_scan.domain.analysis import AnalysisResult

MAX_AMOUNT_FACTOR = 10
SLIDER_AMOUNT_FACTOR = 3


def new_id() -> str:
    """Return a new random identifier."""
    return str(uuid4())


def _complete_vector(values: Mapping[str, float | None]) -> dict[str, float | None]:
    vector: dict[str, float | None] = {}
    for nutrient in ALL_FIELDS:
        value = values.get(nutrient.name)
        if value is None:
            vector[nutrient.name] = 0.0 if nutrient.required else None
        else:
            vector[nutrient.name] = float(value)
    unknown = set(values) - set(FIELDS_BY_NAME)
    if unknown:
        raise KeyError(f"Unknown nutrients: {sorted(unknown)}")
    return vector


@dataclass
class Ingredient:
    """A single ingredient whose nutrients scale with its amount."""

    id: str
    name: str
    original_amount: float
    amount: float
    unit: str
    original_nutrients: Mapping[str, float | None]

    def __post_init__(self) -> None:
        self.original_nutrients = MappingProxyType(
            _complete_vector(self.original_nutrients)
        )
        self.amount = self._clamp(self.amount)

    @classmethod
    def create(
        cls,
        name: str,
        amount: float,
        nutrients: Mapping[str, float | None],
        unit: str = "g",
        ingredient_id: str | None = None,
    ) -> "Ingredient":
        """Create an ingredient whose current amount equals its original."""
        return cls(
            id=ingredient_id or new_id(),
            name=name,
            original_amount=float(amount),
            amount=float(amount),
            unit=unit,
            original_nutrients=nutrients,
        )

    @property
    def scale_factor(self) -> float:
        if self.original_amount > 0:
            return self.amount / self.original_amount
        return 1.0

    @property
    def min_amount(self) -> float:
        """Lower bound of the user-facing adjustment range."""
        return 0.0

    @property
    def max_amount(self) -> float:
        """Upper bound of the user-facing adjustment range."""
        return self.original_amount * SLIDER_AMOUNT_FACTOR

    def value(self, nutrient: str) -> float | None:
        """Return the current, scaled value of a nutrient."""
        original = self.original_nutrients[nutrient]
        if original is None:
            return None
        return original * self.scale_factor

    def nutrients(self) -> dict[str, float | None]:
        """Return every current nutrient value."""
        return {name: self.value(name) for name in self.original_nutrients}

    def set_amount(self, new_amount: float) -> None:
        """Set the current amount, clamped to ten times the original."""
        self.amount = self._clamp(new_amount)

    def reset_amount(self) -> None:
        """Restore the amount estimated by the analysis."""
        self.amount = self.original_amount

    def _clamp(self, value: float) -> float:
        value = float(value)
        if math.isnan(value):
            return 0.0
        upper = max(self.original_amount * MAX_AMOUNT_FACTOR, 0.0)
        return min(max(value, 0.0), upper)

    @property
    def calories(self) -> float:
        return self.value("calories") or 0.0

    @property
    def protein(self) -> float:
        return self.value("protein") or 0.0

    @property
    def carbs(self) -> float:
        return self.value("carbs") or 0.0

    @property
    def sugar(self) -> float:
        return self.value("sugar") or 0.0

    @property
    def fat(self) -> float:
        return self.value("fat") or 0.0

    @property
    def fiber(self) -> float:
        return self.value("fiber") or 0.0

    @property
    def saturated_fat(self) -> float:
        return self.value("saturated_fat") or 0.0

    @property
    def unsaturated_fat(self) -> float:
        return self.value("unsaturated_fat") or 0.0


@dataclass
class Meal:
    """A captured meal owning an ordered list of ingredients."""

    id: str
    name: str
    captured_at: datetime
    ingredients: list[Ingredient] = field(default_factory=list)
    image_url: str | None = None
    confidence: float | None = None
    notes: str | None = None
    evaluation: str | None = None
    is_highly_processed: bool | None = None
    classification: str | None = None

    @classmethod
    def from_analysis(
        cls,
        result: "AnalysisResult",
        captured_at: datetime,
        meal_id: str | None = None,
    ) -> "Meal":
        """Create a meal from a normalized analysis result."""
        return cls(
            id=meal_id or new_id(),
            name=result.dish_name,
            captured_at=captured_at,
            ingredients=list(result.ingredients),
            confidence=result.confidence,
            notes=result.notes or None,
            evaluation=result.evaluation or None,
            is_highly_processed=result.is_highly_processed,
            classification=result.classification.value,
        )

    def add_ingredient(self, ingredient: Ingredient) -> None:
        self.ingredients.append(ingredient)

    def remove_ingredient(self, ingredient_id: str) -> None:
        """Remove every ingredient with the given id."""
        self.ingredients = [
            ingredient
            for ingredient in self.ingredients
            if ingredient.id != ingredient_id
        ]

    def remove_ingredient_at(self, index: int) -> None:
        """Remove an ingredient by position, ignoring out-of-range indexes."""
        if 0 <= index < len(self.ingredients):
            del self.ingredients[index]

    def get_ingredient(self, ingredient_id: str) -> Ingredient:
        for ingredient in self.ingredients:
            if ingredient.id == ingredient_id:
                return ingredient
        raise KeyError(f"Ingredient not found: {ingredient_id}")

    def update_ingredient_amount(self, ingredient_id: str, new_amount: float) -> None:
        """Adjust one ingredient; siblings and totals need no update."""
        self.get_ingredient(ingredient_id).set_amount(new_amount)

    def total(self, nutrient: str) -> float | None:
        """Sum a nutrient over the current ingredient values.

        Optional nutrients sum only the ingredients that report a value and
        stay None when none do.
        """
        if nutrient in REQUIRED_NAMES:
            return sum(
                (ingredient.value(nutrient) or 0.0 for ingredient in self.ingredients),
                0.0,
            )
        if nutrient not in FIELDS_BY_NAME:
            raise KeyError(f"Unknown nutrient: {nutrient}")
        values = [
            value
            for value in (ingredient.value(nutrient) for ingredient in self.ingredients)
            if value is not None
        ]
        if not values:
            return None
        return sum(values, 0.0)

    def totals(self) -> dict[str, float | None]:
        """Return totals for every canonical nutrient."""
        return {nutrient.name: self.total(nutrient.name) for nutrient in ALL_FIELDS}

    @property
    def total_calories(self) -> float:
        return self.total("calories") or 0.0

    @property
    def total_protein(self) -> float:
        return self.total("protein") or 0.0

    @property
    def total_carbs(self) -> float:
        return self.total("carbs") or 0.0

    @property
    def total_fat(self) -> float:
        return self.total("fat") or 0.0

    @property
    def total_fiber(self) -> float:
        return self.total("fiber") or 0.0

    @property
    def total_sugar(self) -> float:
        return self.total("sugar") or 0.0

    @property
    def total_saturated_fat(self) -> float:
        return self.total("saturated_fat") or 0.0

    @property
    def total_unsaturated_fat(self) -> float:
        return self.total("unsaturated_fat") or 0.0
