"""Tests for the progress cycle state machine."""

from datetime import date, timedelta

from meal_scan.domain.progress import (
    CYCLE_DAYS,
    ProgressData,
    advance_cycle,
    build_snapshot,
    date_key,
    mark_active,
)

START = date(2026, 1, 1)


def _days(count: int) -> list[date]:
    return [START + timedelta(days=offset) for offset in range(count)]


def _evaluated(start: date) -> dict[str, object]:
    return {"overall_progress": "Good", "cycle_start_date": date_key(start)}


def test_eighteen_active_days_without_evaluation_is_eligible() -> None:
    data = ProgressData(cycle_start_date=START)

    snapshot, _ = build_snapshot(data, _days(18), START + timedelta(days=19))

    assert snapshot.active_days == 18
    assert snapshot.is_eligible_for_evaluation is True


def test_seventeen_active_days_is_not_eligible() -> None:
    data = ProgressData(cycle_start_date=START)

    snapshot, _ = build_snapshot(data, _days(17), START + timedelta(days=19))

    assert snapshot.active_days == 17
    assert snapshot.is_eligible_for_evaluation is False


def test_eighteen_active_days_with_evaluation_is_not_eligible() -> None:
    data = ProgressData(cycle_start_date=START, last_evaluation=_evaluated(START))

    snapshot, _ = build_snapshot(data, _days(18), START + timedelta(days=19))

    assert snapshot.is_eligible_for_evaluation is False


def test_evaluation_of_previous_cycle_does_not_block_eligibility() -> None:
    previous = START - timedelta(days=25)
    data = ProgressData(cycle_start_date=START, last_evaluation=_evaluated(previous))

    snapshot, _ = build_snapshot(data, _days(18), START + timedelta(days=19))

    assert snapshot.is_eligible_for_evaluation is True
    assert snapshot.last_evaluation == _evaluated(previous)


def test_flags_count_distinct_days_inside_window_only() -> None:
    data = ProgressData(cycle_start_date=START)
    meal_days = [
        START - timedelta(days=1),
        START,
        START,
        START + timedelta(days=3),
        START + timedelta(days=CYCLE_DAYS),
    ]

    snapshot, updated = build_snapshot(data, meal_days, START + timedelta(days=5))

    assert len(snapshot.active_day_flags) == CYCLE_DAYS
    assert snapshot.active_day_flags[0] is True
    assert snapshot.active_day_flags[3] is True
    assert snapshot.active_days == 2
    assert updated.active_days == ("2026-01-01", "2026-01-04")


def test_total_days_and_remaining_are_clamped() -> None:
    data = ProgressData(cycle_start_date=START)

    early, _ = build_snapshot(data, [], START + timedelta(days=4))
    late, _ = build_snapshot(data, [], START + timedelta(days=40))

    assert early.total_days_in_cycle == 5
    assert early.days_remaining == 15
    assert late.total_days_in_cycle == CYCLE_DAYS
    assert late.days_remaining == 0


def test_first_meal_anchors_new_cycle_on_meal_day() -> None:
    first_meal = date(2025, 12, 20)

    advanced = advance_cycle(ProgressData(), first_meal, START)

    assert advanced.cycle_start_date == first_meal
    assert advanced.active_days == ()


def test_no_meals_keeps_no_cycle() -> None:
    data = ProgressData()

    assert advance_cycle(data, None, START) is data


def test_evaluated_cycle_rolls_over_and_keeps_evaluation() -> None:
    evaluation = _evaluated(START)
    data = ProgressData(
        cycle_start_date=START,
        active_days=tuple(date_key(day) for day in _days(18)),
        last_evaluation=evaluation,
    )
    today = START + timedelta(days=CYCLE_DAYS)

    advanced = advance_cycle(data, None, today)

    assert advanced.cycle_start_date == today
    assert advanced.active_days == ()
    assert advanced.last_evaluation == evaluation
    assert advanced.has_evaluation_for_cycle() is False


def test_evaluated_cycle_does_not_roll_over_early() -> None:
    data = ProgressData(cycle_start_date=START, last_evaluation=_evaluated(START))

    assert advance_cycle(data, None, START + timedelta(days=19)) is data


def test_unevaluated_cycle_does_not_roll_over() -> None:
    data = ProgressData(cycle_start_date=START)

    assert advance_cycle(data, None, START + timedelta(days=30)) is data


def test_mark_active_starts_cycle_today() -> None:
    updated = mark_active(ProgressData(), START)

    assert updated.cycle_start_date == START
    assert updated.active_days == ("2026-01-01",)


def test_mark_active_is_idempotent() -> None:
    data = mark_active(ProgressData(cycle_start_date=START), START)

    assert mark_active(data, START) is data
    assert data.active_days == ("2026-01-01",)
