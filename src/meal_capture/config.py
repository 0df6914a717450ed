"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

STORE_BACKENDS = {"file", "supabase"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    analysis_endpoint_url: str = "http://localhost:3000/api/upload"
    analysis_timeout_seconds: float = 60.0
    analysis_stage_scale: float = 1.0
    meal_store_backend: str = "file"
    meal_store_path: str = "data/recorded_meals.json"
    meal_retention_days: int = 30
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    timezone: str | None = None
    goal_calories: float = 2000
    goal_protein_g: float = 120
    goal_carbs_g: float = 250
    goal_fat_g: float = 70
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_store_backend(raw: str | None) -> str:
    """Normalize the configured store backend name."""
    backend = (raw or "file").strip().lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unknown meal store backend {raw!r}; expected one of "
            f"{', '.join(sorted(STORE_BACKENDS))}"
        )
    return backend
