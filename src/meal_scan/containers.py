"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_scan.adapters.openai_inference_client import OpenAIInferenceClient
from meal_scan.adapters.supabase_image_store import SupabaseImageStore
from meal_scan.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_scan.adapters.supabase_progress_repository import (
    SupabaseProgressRepository,
)
from meal_scan.config import Settings
from meal_scan.services.analysis import AnalysisService
from meal_scan.services.canonicalizer import Canonicalizer
from meal_scan.services.images import ImageProcessor
from meal_scan.services.meals import MealService
from meal_scan.services.progress import ProgressService
from meal_scan.services.records import RecordBuilder
from meal_scan.services.stats import StatsService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    analysis_service: AnalysisService
    meal_service: MealService
    stats_service: StatsService
    progress_service: ProgressService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    meal_repository = SupabaseMealRepository(supabase_client)
    progress_repository = SupabaseProgressRepository(supabase_client)
    image_store = SupabaseImageStore(supabase_client, resolved_settings.storage_bucket)

    inference_client = OpenAIInferenceClient.create(resolved_settings.openai_api_key)
    analysis_service = AnalysisService(
        client=inference_client,
        analysis_model=resolved_settings.openai_analysis_model,
        search_model=resolved_settings.openai_search_model,
        evaluation_model=resolved_settings.openai_evaluation_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        record_builder=RecordBuilder(
            canonicalizer=Canonicalizer(max_depth=resolved_settings.max_flatten_depth)
        ),
    )
    analysis_service.initialize()

    progress_service = ProgressService(
        repository=progress_repository,
        meal_repository=meal_repository,
        analysis_service=analysis_service,
        timezone=resolved_settings.timezone,
    )
    meal_service = MealService(
        repository=meal_repository,
        image_store=image_store,
        analysis_service=analysis_service,
        activity_tracker=progress_service,
        image_processor=ImageProcessor(
            max_dimension=resolved_settings.image_max_dimension,
            jpeg_quality=resolved_settings.image_jpeg_quality,
        ),
        timezone=resolved_settings.timezone,
    )
    stats_service = StatsService(meal_repository, timezone=resolved_settings.timezone)

    async def close_resources() -> None:
        await inference_client.close()

    return AppContainer(
        settings=resolved_settings,
        analysis_service=analysis_service,
        meal_service=meal_service,
        stats_service=stats_service,
        progress_service=progress_service,
        close_resources=close_resources,
    )
