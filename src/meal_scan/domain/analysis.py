"""Normalized analysis outcomes."""

from dataclasses import dataclass, field
from enum import StrEnum

from meal_scan.domain.meals import Ingredient


class Classification(StrEnum):
    """What the analyzed input was recognized as."""

    FOOD = "food"
    NUTRITIONAL_LABEL = "nutritional_label_on_packed_product"
    PACKAGED_PRODUCT = "packaged_product_only"
    NO_FOOD = "no_food_no_label"

    @classmethod
    def parse(cls, value: object) -> "Classification":
        """Return the matching classification, defaulting to food."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.FOOD
        return cls.FOOD


@dataclass(frozen=True)
class AnalysisResult:
    """Canonical envelope for one analyzed dish."""

    classification: Classification
    ingredients: list[Ingredient]
    dish_name: str
    confidence: float = 1.0
    notes: str = ""
    evaluation: str = ""
    is_highly_processed: bool = False


@dataclass(frozen=True)
class Rejected:
    """Input that was recognized as containing neither food nor a label."""

    classification: Classification
    original_input: bytes | None = field(default=None, repr=False)
