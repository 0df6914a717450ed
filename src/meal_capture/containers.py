"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

from supabase import create_client

from meal_capture.adapters.analysis_client import HttpxAnalysisClient
from meal_capture.adapters.json_meal_repository import JsonFileMealRepository
from meal_capture.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_capture.config import Settings, parse_store_backend
from meal_capture.services.analysis import AnalysisPipeline
from meal_capture.services.capture import CaptureOrchestrator
from meal_capture.services.events import MealEventBus
from meal_capture.services.meals import MealRepository, MealStore
from meal_capture.services.stats import DailyGoals, StatsService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    events: MealEventBus
    meal_store: MealStore
    analysis_pipeline: AnalysisPipeline
    capture_orchestrator: CaptureOrchestrator
    stats_service: StatsService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    meal_store = MealStore(
        repository=build_meal_repository(resolved_settings),
        timezone=ZoneInfo(resolved_settings.timezone)
        if resolved_settings.timezone
        else None,
        retention_days=resolved_settings.meal_retention_days,
    )
    analysis_client = HttpxAnalysisClient.create(
        endpoint_url=resolved_settings.analysis_endpoint_url,
        timeout_seconds=resolved_settings.analysis_timeout_seconds,
    )
    analysis_pipeline = AnalysisPipeline(
        client=analysis_client,
        stage_scale=resolved_settings.analysis_stage_scale,
    )
    events = MealEventBus()
    capture_orchestrator = CaptureOrchestrator(
        pipeline=analysis_pipeline,
        store=meal_store,
        events=events,
    )
    stats_service = StatsService(
        store=meal_store,
        goals=DailyGoals(
            calories=resolved_settings.goal_calories,
            protein_g=resolved_settings.goal_protein_g,
            carbs_g=resolved_settings.goal_carbs_g,
            fat_g=resolved_settings.goal_fat_g,
        ),
    )

    async def close_resources() -> None:
        await analysis_client.close()

    return AppContainer(
        settings=resolved_settings,
        events=events,
        meal_store=meal_store,
        analysis_pipeline=analysis_pipeline,
        capture_orchestrator=capture_orchestrator,
        stats_service=stats_service,
        close_resources=close_resources,
    )


def build_meal_repository(settings: Settings) -> MealRepository:
    """Select the meal repository for the configured backend."""
    backend = parse_store_backend(settings.meal_store_backend)
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError(
                "MEAL_STORE_BACKEND=supabase requires SUPABASE_URL and "
                "SUPABASE_SERVICE_KEY"
            )
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseMealRepository(client)
    return JsonFileMealRepository(Path(settings.meal_store_path))
