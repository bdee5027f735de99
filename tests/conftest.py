"""Shared test fixtures."""

import io
import json
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import pytest
from PIL import Image

from meal_scan.config import Settings
from meal_scan.containers import AppContainer
from meal_scan.domain.meals import Ingredient, Meal
from meal_scan.domain.progress import ProgressData
from meal_scan.services.analysis import (
    AnalysisService,
    ContentPart,
    InferenceClient,
    ModelProfile,
)
from meal_scan.services.images import ImageProcessor
from meal_scan.services.meals import ImageStore, MealRepository, MealService
from meal_scan.services.progress import ProgressRepository, ProgressService
from meal_scan.services.stats import StatsService

USER_ID = "user-1"

DEFAULT_REPLY = json.dumps(
    {
        "image_classification": "food",
        "dishName": "Chicken and rice",
        "confidence": 0.9,
        "analysisNotes": "Grilled chicken",
        "aiEvaluation": "Balanced meal.",
        "isHighlyProcessed": False,
        "ingredients": [
            {
                "name": "Chicken breast",
                "quantity": "150g",
                "calories": 240,
                "protein": 45,
                "carbs": 0,
                "sugar": 0,
                "fat": 5,
                "fiber": 0,
                "saturatedFat": 1.5,
                "unsaturatedFat": 3.5,
            },
            {
                "name": "White rice",
                "quantity": "200 g",
                "calories": 260,
                "protein": 5,
                "carbs": 56,
                "sugar": 0.2,
                "fat": 0.6,
                "fiber": 0.8,
                "saturatedFat": 0.2,
                "unsaturatedFat": 0.4,
            },
        ],
    }
)


@dataclass
class FakeInferenceClient(InferenceClient):
    """Fake inference client returning queued replies."""

    replies: list[str] = field(default_factory=list)
    default_reply: str = DEFAULT_REPLY
    calls: list[tuple[ModelProfile, list[ContentPart]]] = field(default_factory=list)

    async def generate(self, profile: ModelProfile, parts: list[ContentPart]) -> str:
        self.calls.append((profile, parts))
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    meals: dict[tuple[str, str], Meal] = field(default_factory=dict)
    saves: int = 0

    def save_meal(self, user_id: str, meal: Meal) -> None:
        self.saves += 1
        self.meals[(user_id, meal.id)] = meal

    def get_meal(self, user_id: str, meal_id: str) -> Meal | None:
        return self.meals.get((user_id, meal_id))

    def delete_meal(self, user_id: str, meal_id: str) -> None:
        self.meals.pop((user_id, meal_id), None)

    def list_meals(self, user_id: str, start: datetime, end: datetime) -> list[Meal]:
        return sorted(
            (
                meal
                for (owner, _), meal in self.meals.items()
                if owner == user_id and start <= meal.captured_at < end
            ),
            key=lambda meal: meal.captured_at,
        )

    def list_all_meals(self, user_id: str) -> list[Meal]:
        return sorted(
            (meal for (owner, _), meal in self.meals.items() if owner == user_id),
            key=lambda meal: meal.captured_at,
            reverse=True,
        )

    def get_first_meal_time(self, user_id: str) -> datetime | None:
        times = [
            meal.captured_at
            for (owner, _), meal in self.meals.items()
            if owner == user_id
        ]
        return min(times) if times else None


@dataclass
class InMemoryProgressRepository(ProgressRepository):
    """In-memory progress repository that records every write."""

    progress: dict[str, ProgressData] = field(default_factory=dict)
    writes: list[ProgressData] = field(default_factory=list)

    def get_progress(self, user_id: str) -> ProgressData:
        return self.progress.get(user_id, ProgressData())

    def save_progress(self, user_id: str, data: ProgressData) -> None:
        self.writes.append(data)
        self.progress[user_id] = data


@dataclass
class InMemoryImageStore(ImageStore):
    """In-memory blob store for tests."""

    objects: dict[str, bytes] = field(default_factory=dict)
    deleted: list[str] = field(default_factory=list)

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = data
        return f"https://storage.example/{path}"

    def delete(self, path: str) -> None:
        self.deleted.append(path)
        self.objects.pop(path, None)


@dataclass
class RecordingActivityTracker:
    """Activity tracker that remembers which users were marked active."""

    users: list[str] = field(default_factory=list)

    def mark_today_active(self, user_id: str) -> None:
        self.users.append(user_id)


def make_ingredient(
    name: str = "Oats",
    amount: float = 100.0,
    **nutrients: float | None,
) -> Ingredient:
    return Ingredient.create(name=name, amount=amount, nutrients=nutrients)


def make_meal(
    captured_at: datetime,
    name: str = "Breakfast",
    ingredients: list[Ingredient] | None = None,
    meal_id: str | None = None,
) -> Meal:
    return Meal(
        id=meal_id or f"meal-{captured_at.isoformat()}",
        name=name,
        captured_at=captured_at,
        ingredients=ingredients
        if ingredients is not None
        else [make_ingredient(calories=300, protein=10)],
    )


def at_noon(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0, tzinfo=UTC)


def image_bytes(size: tuple[int, int] = (32, 24), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


def build_analysis_service(client: FakeInferenceClient) -> AnalysisService:
    service = AnalysisService(
        client=client,
        analysis_model="analysis-model",
        search_model="search-model",
        evaluation_model="evaluation-model",
        reasoning_effort="low",
    )
    service.initialize()
    return service


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        api_token="api-token",
        openai_api_key="openai-key",
    )


@pytest.fixture
def inference_client() -> FakeInferenceClient:
    return FakeInferenceClient()


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def progress_repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def analysis_service(inference_client: FakeInferenceClient) -> AnalysisService:
    return build_analysis_service(inference_client)


@pytest.fixture
def progress_service(
    progress_repository: InMemoryProgressRepository,
    meal_repository: InMemoryMealRepository,
    analysis_service: AnalysisService,
) -> ProgressService:
    return ProgressService(
        repository=progress_repository,
        meal_repository=meal_repository,
        analysis_service=analysis_service,
    )


@pytest.fixture
def container(
    settings: Settings,
    analysis_service: AnalysisService,
    meal_repository: InMemoryMealRepository,
    image_store: InMemoryImageStore,
    progress_service: ProgressService,
) -> AppContainer:
    meal_service = MealService(
        repository=meal_repository,
        image_store=image_store,
        analysis_service=analysis_service,
        activity_tracker=progress_service,
        image_processor=ImageProcessor(),
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        analysis_service=analysis_service,
        meal_service=meal_service,
        stats_service=StatsService(meal_repository),
        progress_service=progress_service,
        close_resources=close_resources,
    )
