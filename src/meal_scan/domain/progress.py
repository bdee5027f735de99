"""Twenty-day engagement cycle that gates the progress evaluation.

A cycle starts on the day of the user's first meal. Each calendar day with at
least one meal inside ``[start, start + 20)`` is an active day. Once enough
days are active the user may request an evaluation; after the cycle has run
its course and been evaluated, the next snapshot starts a fresh cycle.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

CYCLE_DAYS = 20
ELIGIBLE_ACTIVE_DAYS = 18
EVALUATION_CYCLE_KEY = "cycle_start_date"


def date_key(day: date) -> str:
    """Return the YYYY-MM-DD key used for active days."""
    return day.isoformat()


@dataclass(frozen=True)
class ProgressData:
    """Persisted cycle state for one user."""

    cycle_start_date: date | None = None
    active_days: tuple[str, ...] = ()
    last_evaluation: dict[str, object] | None = None

    def has_evaluation_for_cycle(self) -> bool:
        """Return True when the stored evaluation belongs to the current cycle."""
        if self.last_evaluation is None or self.cycle_start_date is None:
            return False
        stamp = self.last_evaluation.get(EVALUATION_CYCLE_KEY)
        return stamp == date_key(self.cycle_start_date)

    def cycle_days(self) -> list[date]:
        """Return every calendar day of the current cycle."""
        if self.cycle_start_date is None:
            return []
        return [
            self.cycle_start_date + timedelta(days=offset)
            for offset in range(CYCLE_DAYS)
        ]


@dataclass(frozen=True)
class ProgressSnapshot:
    """Computed view of the current cycle."""

    cycle_start_date: date | None
    total_days_in_cycle: int
    active_days: int
    active_day_flags: list[bool] = field(
        default_factory=lambda: [False] * CYCLE_DAYS
    )
    days_remaining: int = CYCLE_DAYS
    is_eligible_for_evaluation: bool = False
    last_evaluation: dict[str, object] | None = None


@dataclass(frozen=True)
class EvaluationProfile:
    """User details sent along with an evaluation request."""

    gender: str
    age: int
    weight_kg: float
    gain_mode: bool = False

    @property
    def goal(self) -> str:
        if self.gain_mode:
            return "gain weight / build muscle"
        return "lose weight / lose fat"


def empty_snapshot(data: ProgressData) -> ProgressSnapshot:
    """Snapshot for a user without any meal history."""
    return ProgressSnapshot(
        cycle_start_date=None,
        total_days_in_cycle=0,
        active_days=0,
        last_evaluation=data.last_evaluation,
    )


def advance_cycle(
    data: ProgressData, first_meal_day: date | None, today: date
) -> ProgressData:
    """Apply the start and rollover transitions of the cycle state machine.

    Without a cycle, the first meal anchors a new one on that meal's day. A
    cycle that is at least twenty days old and has been evaluated rolls over
    to a fresh cycle starting today; the evaluation itself is kept.
    """
    if data.cycle_start_date is None:
        if first_meal_day is None:
            return data
        return ProgressData(
            cycle_start_date=first_meal_day,
            active_days=(),
            last_evaluation=data.last_evaluation,
        )

    days_since_start = (today - data.cycle_start_date).days
    if days_since_start >= CYCLE_DAYS and data.has_evaluation_for_cycle():
        return ProgressData(
            cycle_start_date=today,
            active_days=(),
            last_evaluation=data.last_evaluation,
        )
    return data


def build_snapshot(
    data: ProgressData, meal_days: Iterable[date], today: date
) -> tuple[ProgressSnapshot, ProgressData]:
    """Recompute the active days of the cycle from meal capture days.

    Returns the snapshot together with the progress data carrying the
    recomputed active-day set, so callers can persist it when it changed.
    """
    start = data.cycle_start_date
    if start is None:
        return empty_snapshot(data), data

    flags = [False] * CYCLE_DAYS
    active_keys: set[str] = set()
    for day in meal_days:
        index = (day - start).days
        if 0 <= index < CYCLE_DAYS:
            flags[index] = True
            active_keys.add(date_key(day))

    days_since_start = (today - start).days
    total_days = min(max(days_since_start + 1, 0), CYCLE_DAYS)
    active_count = sum(flags)
    snapshot = ProgressSnapshot(
        cycle_start_date=start,
        total_days_in_cycle=total_days,
        active_days=active_count,
        active_day_flags=flags,
        days_remaining=min(max(CYCLE_DAYS - total_days, 0), CYCLE_DAYS),
        is_eligible_for_evaluation=(
            active_count >= ELIGIBLE_ACTIVE_DAYS
            and not data.has_evaluation_for_cycle()
        ),
        last_evaluation=data.last_evaluation,
    )
    return snapshot, replace(data, active_days=tuple(sorted(active_keys)))


def mark_active(data: ProgressData, today: date) -> ProgressData:
    """Record today as active, starting a cycle today when none exists."""
    key = date_key(today)
    if data.cycle_start_date is None:
        return ProgressData(
            cycle_start_date=today,
            active_days=(key,),
            last_evaluation=data.last_evaluation,
        )
    if key in data.active_days:
        return data
    return replace(data, active_days=(*data.active_days, key))
