"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from meal_capture.config import Settings
from meal_capture.containers import AppContainer
from meal_capture.domain.meals import RecordedMeal
from meal_capture.services.analysis import AnalysisClient, AnalysisPipeline
from meal_capture.services.capture import CaptureOrchestrator
from meal_capture.services.events import MealEventBus
from meal_capture.services.meals import MealRepository, MealStorageError, MealStore
from meal_capture.services.stats import DailyGoals, StatsService

NOON = datetime(2024, 5, 10, 12, tzinfo=UTC)

STRUCTURED_PAYLOAD: dict[str, object] = {
    "mealName": "Oatmeal with berries",
    "totalCalories": 350,
    "macros": {
        "protein": 12,
        "carbohydrates": 58,
        "fat": 7,
        "fiber": 8,
        "sugar": 14,
    },
    "ingredients": ["oats", "blueberries", "milk"],
    "healthScore": 8,
    "recommendations": ["Add nuts for more protein"],
    "portionSize": "1 bowl",
    "mealType": "breakfast",
}


@dataclass
class FixedClock:
    """Clock returning a settable instant."""

    now: datetime = NOON

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    meals: list[RecordedMeal] = field(default_factory=list)

    def list_meals(self) -> list[RecordedMeal]:
        return list(self.meals)

    def insert_meal(self, meal: RecordedMeal) -> None:
        self.meals.append(meal)

    def delete_meal(self, meal_id: str) -> bool:
        kept = [meal for meal in self.meals if meal.id != meal_id]
        removed = len(kept) != len(self.meals)
        self.meals = kept
        return removed

    def delete_before(self, cutoff: datetime) -> int:
        kept = [meal for meal in self.meals if meal.timestamp >= cutoff]
        removed = len(self.meals) - len(kept)
        self.meals = kept
        return removed


@dataclass
class FailingMealRepository(MealRepository):
    """Repository whose backing store is unavailable."""

    def list_meals(self) -> list[RecordedMeal]:
        raise MealStorageError("storage unavailable")

    def insert_meal(self, meal: RecordedMeal) -> None:
        raise MealStorageError("storage unavailable")

    def delete_meal(self, meal_id: str) -> bool:
        raise MealStorageError("storage unavailable")

    def delete_before(self, cutoff: datetime) -> int:
        raise MealStorageError("storage unavailable")


@dataclass
class ScriptedAnalysisClient(AnalysisClient):
    """Fake analysis endpoint returning a payload or raising an error.

    When ``gate`` is set the call blocks until the event is released.
    """

    payload: object = field(default_factory=lambda: dict(STRUCTURED_PAYLOAD))
    error: Exception | None = None
    gate: asyncio.Event | None = None
    bodies: list[dict[str, object]] = field(default_factory=list)

    async def analyze(self, body: dict[str, object]) -> object:
        self.bodies.append(body)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.payload


def status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://analysis.test/api/upload")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(
        f"HTTP {status_code}", request=request, response=response
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def meal_store(
    meal_repository: InMemoryMealRepository, clock: FixedClock
) -> MealStore:
    return MealStore(repository=meal_repository, timezone=UTC, clock=clock)


@pytest.fixture
def analysis_client() -> ScriptedAnalysisClient:
    return ScriptedAnalysisClient()


@pytest.fixture
def pipeline(analysis_client: ScriptedAnalysisClient) -> AnalysisPipeline:
    return AnalysisPipeline(client=analysis_client, stage_scale=0)


@pytest.fixture
def events() -> MealEventBus:
    return MealEventBus()


@pytest.fixture
def orchestrator(
    pipeline: AnalysisPipeline, meal_store: MealStore, events: MealEventBus
) -> CaptureOrchestrator:
    return CaptureOrchestrator(pipeline=pipeline, store=meal_store, events=events)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        analysis_endpoint_url="https://analysis.test/api/upload",
        analysis_stage_scale=0,
        meal_store_backend="file",
        meal_store_path=str(tmp_path / "recorded_meals.json"),
        timezone="UTC",
    )


@pytest.fixture
def container(
    settings: Settings,
    meal_repository: InMemoryMealRepository,
    analysis_client: ScriptedAnalysisClient,
) -> AppContainer:
    meal_store = MealStore(repository=meal_repository, timezone=UTC)
    pipeline = AnalysisPipeline(client=analysis_client, stage_scale=0)
    events = MealEventBus()

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        events=events,
        meal_store=meal_store,
        analysis_pipeline=pipeline,
        capture_orchestrator=CaptureOrchestrator(
            pipeline=pipeline, store=meal_store, events=events
        ),
        stats_service=StatsService(store=meal_store, goals=DailyGoals()),
        close_resources=close_resources,
    )
