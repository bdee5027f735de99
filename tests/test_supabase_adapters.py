"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from meal_scan.adapters.supabase_image_store import SupabaseImageStore
from meal_scan.adapters.supabase_meal_repository import (
    SupabaseMealRepository,
    ingredient_from_document,
    ingredient_to_document,
    meal_to_row,
)
from meal_scan.adapters.supabase_progress_repository import (
    SupabaseProgressRepository,
)
from meal_scan.domain.progress import ProgressData
from tests.conftest import USER_ID, make_ingredient, make_meal


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": [], "delete": []}
    )
    last_payload: object | None = None
    last_conflict: str | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(self, payload, on_conflict="") -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.last_conflict = on_conflict
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def gte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((f"{column}>=", value))
        return self

    def lt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((f"{column}<", value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeBucket:
    objects: dict[str, bytes] = field(default_factory=dict)
    options: dict[str, object] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)

    def upload(self, path, data, file_options=None) -> None:  # type: ignore[no-untyped-def]
        self.objects[path] = data
        self.options = dict(file_options or {})

    def get_public_url(self, path: str) -> str:
        return f"https://cdn.example/{path}"

    def remove(self, paths: list[str]) -> None:
        self.removed.extend(paths)


@dataclass
class FakeStorage:
    buckets: dict[str, FakeBucket] = field(default_factory=dict)

    def from_(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket())


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    storage: FakeStorage = field(default_factory=FakeStorage)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_ingredient_document_uses_original_keys_and_omits_unknowns() -> None:
    ingredient = make_ingredient(
        name="Salmon", amount=120, calories=250, saturated_fat=2.5, vitamin_d=11.0
    )
    ingredient.set_amount(60)

    document = ingredient_to_document(ingredient)

    assert document["amount"] == 60
    assert document["originalAmount"] == 120
    assert document["originalCalories"] == 250
    assert document["originalSaturatedFat"] == 2.5
    assert document["originalVitaminD"] == 11.0
    assert document["originalProtein"] == 0.0
    assert "originalSodium" not in document


def test_ingredient_document_restores_scaled_values() -> None:
    document = {
        "id": "ing-1",
        "name": "Bread",
        "amount": 50,
        "originalAmount": 100,
        "unit": "g",
        "originalCalories": 260,
        "originalIron": 3.6,
    }

    ingredient = ingredient_from_document(document)

    assert ingredient.calories == 130
    assert ingredient.value("iron") == 1.8
    assert ingredient.value("zinc") is None


def test_supabase_meal_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    meals_table = client.table("meals")
    meal = make_meal(
        datetime(2026, 2, 1, 8, 30, tzinfo=UTC),
        ingredients=[make_ingredient(calories=389, protein=17)],
    )
    row = meal_to_row(USER_ID, meal)
    meals_table.queue("upsert", [row])
    meals_table.queue("select", [row])

    repository = SupabaseMealRepository(client)
    repository.save_meal(USER_ID, meal)
    fetched = repository.get_meal(USER_ID, meal.id)

    assert meals_table.last_conflict == "user_id,id"
    assert meals_table.last_payload["total_calories"] == 389
    assert fetched is not None
    assert fetched.captured_at == meal.captured_at
    assert fetched.total_protein == 17
    assert ("id", meal.id) in meals_table.last_filters


def test_supabase_meal_repository_save_requires_response() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseMealRepository(client)

    try:
        repository.save_meal(USER_ID, make_meal(datetime(2026, 2, 1, tzinfo=UTC)))
    except RuntimeError as exc:
        assert "Failed to save meal" in str(exc)
    else:
        raise AssertionError("Expected RuntimeError")


def test_supabase_meal_repository_range_and_first_meal() -> None:
    client = FakeSupabaseClient()
    meals_table = client.table("meals")
    first = make_meal(datetime(2026, 2, 1, 8, 30, tzinfo=UTC))
    meals_table.queue("select", [meal_to_row(USER_ID, first)])
    meals_table.queue("select", [{"captured_at": "2026-01-15T09:00:00+00:00"}])

    repository = SupabaseMealRepository(client)
    start = datetime(2026, 2, 1, tzinfo=UTC)
    end = datetime(2026, 2, 2, tzinfo=UTC)
    meals = repository.list_meals(USER_ID, start, end)
    first_time = repository.get_first_meal_time(USER_ID)

    assert [meal.id for meal in meals] == [first.id]
    assert ("captured_at>=", start.isoformat()) in meals_table.last_filters
    assert ("captured_at<", end.isoformat()) in meals_table.last_filters
    assert first_time == datetime(2026, 1, 15, 9, 0, tzinfo=UTC)
    assert repository.get_meal(USER_ID, "missing") is None


def test_supabase_progress_repository() -> None:
    client = FakeSupabaseClient()
    progress_table = client.table("progress")
    progress_table.queue(
        "select",
        [
            {
                "cycle_start_date": "2026-02-01",
                "active_days": ["2026-02-01", "2026-02-03"],
                "last_evaluation": None,
            }
        ],
    )

    repository = SupabaseProgressRepository(client)
    data = repository.get_progress(USER_ID)
    repository.save_progress(
        USER_ID, ProgressData(date(2026, 2, 1), ("2026-02-01",), {"progress_score": 7})
    )

    assert data.cycle_start_date == date(2026, 2, 1)
    assert data.active_days == ("2026-02-01", "2026-02-03")
    assert progress_table.last_conflict == "user_id"
    payload = progress_table.last_payload
    assert payload["cycle_start_date"] == "2026-02-01"
    assert payload["active_days"] == ["2026-02-01"]
    assert payload["last_evaluation"] == {"progress_score": 7}
    assert repository.get_progress(USER_ID) == ProgressData()


def test_supabase_image_store() -> None:
    client = FakeSupabaseClient()
    store = SupabaseImageStore(client, bucket="meal-images")

    url = store.upload("users/u/meals/m.jpg", b"jpeg", "image/jpeg")
    store.delete("users/u/meals/m.jpg")

    bucket = client.storage.buckets["meal-images"]
    assert url == "https://cdn.example/users/u/meals/m.jpg"
    assert bucket.objects["users/u/meals/m.jpg"] == b"jpeg"
    assert bucket.options["content-type"] == "image/jpeg"
    assert bucket.removed == ["users/u/meals/m.jpg"]
