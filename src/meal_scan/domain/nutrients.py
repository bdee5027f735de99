"""Canonical nutrition schema and source-key aliases."""

from dataclasses import dataclass
from enum import StrEnum


class NutritionTier(StrEnum):
    """Output schema requested from the analysis model."""

    ESSENTIAL = "essential"
    COMPREHENSIVE = "comprehensive"


@dataclass(frozen=True)
class NutrientField:
    """A canonical nutrient with its priority-ordered source aliases.

    The alias order is part of the output contract: the first alias present
    in a bag with a usable value wins.
    """

    name: str
    unit: str
    aliases: tuple[str, ...]
    required: bool = False


ESSENTIAL_FIELDS: tuple[NutrientField, ...] = (
    NutrientField(
        "calories", "kcal", ("calories", "kcal", "energy", "energy_kcal"), True
    ),
    NutrientField("protein", "g", ("protein", "proteins", "protein_g"), True),
    NutrientField(
        "carbs",
        "g",
        (
            "carbs",
            "carbohydrates",
            "total_carbohydrates",
            "carbohydrate",
            "total_carbohydrate",
            "carbs_g",
        ),
        True,
    ),
    NutrientField(
        "sugar", "g", ("sugar", "sugars", "total_sugars", "sugar_g"), True
    ),
    NutrientField("fat", "g", ("fat", "total_fat", "fats", "fat_g"), True),
    NutrientField(
        "fiber",
        "g",
        ("fiber", "fibre", "dietary_fiber", "dietary_fibre", "fiber_g"),
        True,
    ),
    NutrientField(
        "saturated_fat",
        "g",
        ("saturatedfat", "saturated_fat", "saturated_fats", "sat_fat"),
        True,
    ),
    NutrientField(
        "unsaturated_fat",
        "g",
        ("unsaturatedfat", "unsaturated_fat", "unsaturated_fats"),
        True,
    ),
)

OPTIONAL_FIELDS: tuple[NutrientField, ...] = (
    # Fatty acids
    NutrientField("omega3", "g", ("omega3", "omega_3", "omega-3")),
    NutrientField("omega6", "g", ("omega6", "omega_6", "omega-6")),
    NutrientField("trans_fat", "g", ("transfat", "trans_fat", "trans_fats")),
    NutrientField(
        "monounsaturated_fat",
        "g",
        ("monounsaturatedfat", "monounsaturated_fat", "mufa"),
    ),
    NutrientField(
        "polyunsaturated_fat",
        "g",
        ("polyunsaturatedfat", "polyunsaturated_fat", "pufa"),
    ),
    # Major minerals
    NutrientField("sodium", "mg", ("sodium", "sodium_mg")),
    NutrientField("potassium", "mg", ("potassium", "potassium_mg")),
    NutrientField("calcium", "mg", ("calcium", "calcium_mg")),
    NutrientField("magnesium", "mg", ("magnesium", "magnesium_mg")),
    NutrientField("phosphorus", "mg", ("phosphorus", "phosphorus_mg")),
    # Trace minerals
    NutrientField("iron", "mg", ("iron", "iron_mg")),
    NutrientField("zinc", "mg", ("zinc", "zinc_mg")),
    NutrientField("selenium", "mcg", ("selenium", "selenium_mcg")),
    NutrientField("iodine", "mcg", ("iodine", "iodine_mcg")),
    NutrientField("copper", "mcg", ("copper", "copper_mcg")),
    NutrientField("manganese", "mg", ("manganese", "manganese_mg")),
    NutrientField("chromium", "mcg", ("chromium", "chromium_mcg")),
    # Fat-soluble vitamins
    NutrientField("vitamin_a", "mcg", ("vitamina", "vitamin_a", "retinol")),
    NutrientField("vitamin_d", "IU", ("vitamind", "vitamin_d")),
    NutrientField("vitamin_e", "mg", ("vitamine", "vitamin_e", "tocopherol")),
    NutrientField("vitamin_k", "mcg", ("vitamink", "vitamin_k")),
    # Water-soluble vitamins
    NutrientField("vitamin_c", "mg", ("vitaminc", "vitamin_c", "ascorbic_acid")),
    NutrientField(
        "thiamin", "mg", ("thiamin", "thiamine", "vitaminb1", "vitamin_b1")
    ),
    NutrientField("riboflavin", "mg", ("riboflavin", "vitaminb2", "vitamin_b2")),
    NutrientField("niacin", "mg", ("niacin", "vitaminb3", "vitamin_b3")),
    NutrientField(
        "pantothenic_acid",
        "mg",
        ("pantothenicacid", "pantothenic_acid", "vitaminb5", "vitamin_b5"),
    ),
    NutrientField("vitamin_b6", "mg", ("vitaminb6", "vitamin_b6", "pyridoxine")),
    NutrientField("biotin", "mcg", ("biotin", "vitaminb7", "vitamin_b7")),
    NutrientField(
        "folate", "mcg", ("folate", "folic_acid", "vitaminb9", "vitamin_b9")
    ),
    NutrientField(
        "vitamin_b12", "mcg", ("vitaminb12", "vitamin_b12", "cobalamin")
    ),
    # Other
    NutrientField("choline", "mg", ("choline", "choline_mg")),
    NutrientField("cholesterol", "mg", ("cholesterol", "cholesterol_mg")),
)

ALL_FIELDS: tuple[NutrientField, ...] = ESSENTIAL_FIELDS + OPTIONAL_FIELDS

REQUIRED_NAMES: tuple[str, ...] = tuple(field.name for field in ESSENTIAL_FIELDS)
OPTIONAL_NAMES: tuple[str, ...] = tuple(field.name for field in OPTIONAL_FIELDS)
FIELDS_BY_NAME: dict[str, NutrientField] = {field.name: field for field in ALL_FIELDS}


def fields_for_tier(tier: NutritionTier) -> tuple[NutrientField, ...]:
    """Return the fields the resolver attempts to fill for a tier."""
    if tier is NutritionTier.COMPREHENSIVE:
        return ALL_FIELDS
    return ESSENTIAL_FIELDS
