"""Assemble resolved ingredients into an analysis result."""

import logging
from dataclasses import dataclass, field

from meal_scan.domain.analysis import AnalysisResult, Classification, Rejected
from meal_scan.domain.extraction import AttributeBag, ParsedValue, ValueShape
from meal_scan.domain.meals import Ingredient
from meal_scan.domain.nutrients import NutritionTier
from meal_scan.services.canonicalizer import Canonicalizer
from meal_scan.services.nutrients import NutrientResolver, first_number, first_text

DEFAULT_DISH_NAME = "Scanned Meal"
DEFAULT_CONFIDENCE = 1.0

CLASSIFICATION_KEYS = ("image_classification", "classification")
DISH_NAME_KEYS = ("dishname", "dish_name")
ALTERNATE_NAME_KEYS = ("name", "meal_name", "title")
CONFIDENCE_KEYS = ("confidence",)
NOTES_KEYS = ("analysisnotes", "analysis_notes", "notes")
EVALUATION_KEYS = ("aievaluation", "ai_evaluation", "evaluation", "ai_eval")
PROCESSED_KEYS = (
    "ishighlyprocessed",
    "is_highly_processed",
    "highlyprocessed",
    "highly_processed",
)
INGREDIENTS_KEY = "ingredients"

_logger = logging.getLogger(__name__)


@dataclass
class RecordBuilder:
    """Build the canonical envelope for one parsed model response."""

    resolver: NutrientResolver = field(default_factory=NutrientResolver)
    canonicalizer: Canonicalizer = field(default_factory=Canonicalizer)

    def build(
        self,
        parsed: ParsedValue,
        tier: NutritionTier,
        fallback_query: str | None = None,
        original_input: bytes | None = None,
    ) -> AnalysisResult | Rejected:
        """Resolve a parsed payload, or reject it when it is not food."""
        if parsed.shape is ValueShape.ARRAY:
            return self._build_from_array(parsed.bags, tier, fallback_query)

        bag = parsed.bag
        classification = Classification.parse(_first_value(bag, CLASSIFICATION_KEYS))
        if classification is Classification.NO_FOOD:
            _logger.info("Analysis rejected: classification=%s", classification.value)
            return Rejected(
                classification=classification, original_input=original_input
            )

        dish_name = (
            first_text(bag, DISH_NAME_KEYS)
            or first_text(bag, ALTERNATE_NAME_KEYS)
            or _clean(fallback_query)
            or DEFAULT_DISH_NAME
        )
        confidence = first_number(bag, CONFIDENCE_KEYS)
        return AnalysisResult(
            classification=classification,
            ingredients=self._resolve_ingredients(bag, tier, dish_name),
            dish_name=dish_name,
            confidence=DEFAULT_CONFIDENCE if confidence is None else confidence,
            notes=first_text(bag, NOTES_KEYS) or "",
            evaluation=first_text(bag, EVALUATION_KEYS) or "",
            is_highly_processed=_first_value(bag, PROCESSED_KEYS) is True,
        )

    def _build_from_array(
        self,
        bags: list[AttributeBag],
        tier: NutritionTier,
        fallback_query: str | None,
    ) -> AnalysisResult:
        dish_name = _clean(fallback_query) or DEFAULT_DISH_NAME
        ingredients = [
            self.resolver.resolve(bag, tier, fallback_name=dish_name) for bag in bags
        ]
        return AnalysisResult(
            classification=Classification.FOOD,
            ingredients=ingredients,
            dish_name=dish_name,
        )

    def _resolve_ingredients(
        self, bag: AttributeBag, tier: NutritionTier, dish_name: str
    ) -> list[Ingredient]:
        raw_items = bag.get(INGREDIENTS_KEY)
        items = (
            [item for item in raw_items if isinstance(item, dict)]
            if isinstance(raw_items, list)
            else []
        )
        if not items:
            # A single nutrition label: the whole object describes one item.
            single = {
                key: value for key, value in bag.items() if key != INGREDIENTS_KEY
            }
            return [self.resolver.resolve(single, tier, fallback_name=dish_name)]
        return [
            self.resolver.resolve(self.canonicalizer.flatten(item), tier)
            for item in items
        ]


def _first_value(bag: AttributeBag, keys: tuple[str, ...]) -> object:
    for key in keys:
        if key in bag:
            return bag[key]
    return None


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    return text.strip() or None
