"""Resolve alias-tolerant attribute bags onto the canonical nutrient schema."""

import math
import re
from dataclasses import dataclass

from meal_scan.domain.extraction import AttributeBag
from meal_scan.domain.meals import Ingredient
from meal_scan.domain.nutrients import NutritionTier, fields_for_tier

DEFAULT_AMOUNT = 100.0
DEFAULT_UNIT = "g"
UNKNOWN_NAME = "Unknown"

NAME_ALIASES: tuple[str, ...] = ("name", "ingredient")
QUANTITY_ALIASES: tuple[str, ...] = (
    "quantity",
    "amount",
    "serving_size",
    "portion",
    "weight",
)

_NUMERIC_PREFIX_RE = re.compile(r"[0-9.]+")
_QUANTITY_RE = re.compile(r"([0-9.]+)\s*([^\W\d_]+)?")


@dataclass
class NutrientResolver:
    """Map a flattened attribute bag onto an ingredient record."""

    def resolve(
        self,
        bag: AttributeBag,
        tier: NutritionTier,
        fallback_name: str | None = None,
    ) -> Ingredient:
        """Build an ingredient, defaulting every field that cannot be resolved."""
        nutrients: dict[str, float | None] = {}
        for nutrient in fields_for_tier(tier):
            value = first_number(bag, nutrient.aliases)
            if value is None and nutrient.required:
                value = 0.0
            nutrients[nutrient.name] = value

        amount, unit = parse_quantity(_first_present(bag, QUANTITY_ALIASES))
        return Ingredient.create(
            name=resolve_name(bag, fallback_name),
            amount=amount,
            unit=unit,
            nutrients=nutrients,
        )


def coerce_number(value: object) -> float | None:
    """Convert a model-supplied value to a float, or None when unusable.

    Strings may carry trailing units ("45.1mg") which are discarded.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text or text.lower() == "n/a":
        return None

    prefix = _NUMERIC_PREFIX_RE.match(text)
    if prefix:
        number = _parse_float(prefix.group(0))
        if number is not None:
            return number
    return _parse_float(text)


def first_number(bag: AttributeBag, aliases: tuple[str, ...]) -> float | None:
    """Return the first alias value in the bag that coerces to a number."""
    for alias in aliases:
        if alias not in bag:
            continue
        number = coerce_number(bag[alias])
        if number is not None:
            return number
    return None


def first_text(bag: AttributeBag, aliases: tuple[str, ...]) -> str | None:
    """Return the first alias value in the bag that is a non-empty string."""
    for alias in aliases:
        value = bag.get(alias)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def resolve_name(bag: AttributeBag, fallback_name: str | None) -> str:
    return first_text(bag, NAME_ALIASES) or fallback_name or UNKNOWN_NAME


def parse_quantity(value: object) -> tuple[float, str]:
    """Split a quantity like "75g" or "30 ml" into amount and unit.

    Missing, unparseable, or zero quantities fall back to 100 g so that the
    ingredient always has a positive original amount.
    """
    amount: float | None = None
    unit = DEFAULT_UNIT
    if isinstance(value, int | float) and not isinstance(value, bool):
        amount = float(value) if math.isfinite(value) else None
    elif isinstance(value, str):
        match = _QUANTITY_RE.search(value.strip().lower())
        if match:
            amount = _parse_float(match.group(1))
            unit = match.group(2) or DEFAULT_UNIT

    if amount is None or amount <= 0:
        return DEFAULT_AMOUNT, unit
    return amount, unit


def _first_present(bag: AttributeBag, aliases: tuple[str, ...]) -> object:
    for alias in aliases:
        value = bag.get(alias)
        if value is not None:
            return value
    return None


def _parse_float(text: str) -> float | None:
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
