"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    openai_api_key: str
    openai_analysis_model: str = "gpt-5.2"
    openai_search_model: str = "gpt-5-mini"
    openai_evaluation_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = "low"
    openai_store: bool = False
    storage_bucket: str = "meal-images"
    timezone: str = "UTC"
    image_max_dimension: int = 768
    image_jpeg_quality: int = 85
    max_flatten_depth: int = 16
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
