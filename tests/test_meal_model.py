"""Tests for ingredient scaling and meal totals."""

from datetime import UTC, datetime

import pytest

from meal_scan.domain.analysis import AnalysisResult, Classification
from meal_scan.domain.meals import Ingredient, Meal
from tests.conftest import make_ingredient

CAPTURED_AT = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)


def test_scaling_is_linear_and_reversible() -> None:
    ingredient = make_ingredient(amount=80, calories=300, protein=12.5, iron=2.0)
    before = ingredient.nutrients()

    ingredient.set_amount(200)
    assert ingredient.calories == pytest.approx(750)
    assert ingredient.value("iron") == pytest.approx(5.0)

    ingredient.set_amount(ingredient.original_amount)
    after = ingredient.nutrients()
    for name, value in before.items():
        if value is None:
            assert after[name] is None
        else:
            assert after[name] == pytest.approx(value)


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(-5, 0.0), (0, 0.0), (150, 150.0), (1000, 1000.0), (5000, 1000.0)],
)
def test_amount_is_clamped(requested: float, expected: float) -> None:
    ingredient = make_ingredient(amount=100, calories=100)

    ingredient.set_amount(requested)

    assert ingredient.amount == expected
    assert 0 <= ingredient.amount <= ingredient.original_amount * 10


def test_nan_amount_becomes_zero() -> None:
    ingredient = make_ingredient(amount=100, calories=100)

    ingredient.set_amount(float("nan"))

    assert ingredient.amount == 0.0
    assert ingredient.calories == 0.0


def test_reset_restores_original_amount() -> None:
    ingredient = make_ingredient(amount=60, calories=90)
    ingredient.set_amount(10)

    ingredient.reset_amount()

    assert ingredient.amount == 60
    assert ingredient.calories == 90


def test_slider_range_is_three_times_original() -> None:
    ingredient = make_ingredient(amount=50)

    assert ingredient.min_amount == 0.0
    assert ingredient.max_amount == 150.0


def test_zero_original_amount_uses_unit_scale() -> None:
    ingredient = Ingredient(
        id="i-1",
        name="Spice",
        original_amount=0.0,
        amount=0.0,
        unit="g",
        original_nutrients={"calories": 5},
    )

    assert ingredient.scale_factor == 1.0
    assert ingredient.calories == 5


def test_unknown_nutrient_is_rejected() -> None:
    with pytest.raises(KeyError):
        make_ingredient(glitter=1.0)


def test_original_nutrients_are_read_only() -> None:
    ingredient = make_ingredient(calories=100)

    with pytest.raises(TypeError):
        ingredient.original_nutrients["calories"] = 5  # type: ignore[index]


def test_adding_and_removing_changes_totals_exactly() -> None:
    meal = Meal(id="m-1", name="Lunch", captured_at=CAPTURED_AT)
    meal.add_ingredient(make_ingredient(name="Bread", calories=210))
    snack = make_ingredient(name="Apple", calories=150)

    before = meal.total_calories
    meal.add_ingredient(snack)
    assert meal.total_calories == before + 150

    meal.remove_ingredient(snack.id)
    assert meal.total_calories == before


def test_totals_follow_ingredient_amount_changes() -> None:
    rice = make_ingredient(name="Rice", amount=100, calories=130, carbs=28)
    meal = Meal(
        id="m-1",
        name="Rice bowl",
        captured_at=CAPTURED_AT,
        ingredients=[rice, make_ingredient(name="Egg", amount=50, calories=70)],
    )

    meal.update_ingredient_amount(rice.id, 200)

    assert meal.total_calories == pytest.approx(330)
    assert meal.total_carbs == pytest.approx(56)


def test_optional_total_sums_reporting_ingredients_only() -> None:
    meal = Meal(
        id="m-1",
        name="Soup",
        captured_at=CAPTURED_AT,
        ingredients=[make_ingredient(sodium=None), make_ingredient(sodium=200)],
    )

    assert meal.total("sodium") == 200


def test_optional_total_is_none_when_nobody_reports() -> None:
    meal = Meal(
        id="m-1",
        name="Soup",
        captured_at=CAPTURED_AT,
        ingredients=[make_ingredient(sodium=None), make_ingredient(sodium=None)],
    )

    assert meal.total("sodium") is None
    assert meal.totals()["sodium"] is None


def test_update_unknown_ingredient_raises() -> None:
    meal = Meal(id="m-1", name="Empty", captured_at=CAPTURED_AT)

    with pytest.raises(KeyError):
        meal.update_ingredient_amount("missing", 10)


def test_remove_ingredient_at_ignores_out_of_range() -> None:
    first = make_ingredient(name="A")
    meal = Meal(id="m-1", name="Pair", captured_at=CAPTURED_AT, ingredients=[first])

    meal.remove_ingredient_at(5)
    assert len(meal.ingredients) == 1

    meal.remove_ingredient_at(0)
    assert meal.ingredients == []


def test_meal_from_analysis_copies_metadata() -> None:
    result = AnalysisResult(
        classification=Classification.PACKAGED_PRODUCT,
        ingredients=[make_ingredient(name="Crisps", calories=530)],
        dish_name="Crisps",
        confidence=0.6,
        notes="Bag of crisps",
        is_highly_processed=True,
    )

    meal = Meal.from_analysis(result, captured_at=CAPTURED_AT, meal_id="m-9")

    assert meal.id == "m-9"
    assert meal.name == "Crisps"
    assert meal.classification == "packaged_product_only"
    assert meal.is_highly_processed is True
    assert meal.notes == "Bag of crisps"
    assert meal.evaluation is None
    assert meal.total_calories == 530


def test_missing_required_nutrients_default_to_zero_and_optional_to_none() -> None:
    ingredient = Ingredient.create(name="Apple", amount=150, nutrients={})

    assert ingredient.original_nutrients["calories"] == 0.0
    assert ingredient.original_nutrients["saturated_fat"] == 0.0
    assert ingredient.original_nutrients["vitamin_c"] is None
