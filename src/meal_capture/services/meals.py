"""Meal store: persistence boundary and aggregate queries for recorded meals."""

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Protocol
from uuid import uuid4

from pydantic import ValidationError

from meal_capture.domain.meals import (
    MealInput,
    RecordedMeal,
    SaveResult,
    normalize_meal_name,
)
from meal_capture.domain.nutrition import NutritionData, NutritionSummary

FAVORITE_THRESHOLD = 3
DEFAULT_MEAL_NAME = "Recorded Meal"

_logger = logging.getLogger(__name__)


class MealStorageError(RuntimeError):
    """Raised by repositories when the backing store cannot be read or written."""


class MealRepository(Protocol):
    """Persistence interface for recorded meals."""

    def list_meals(self) -> list[RecordedMeal]:
        """Return every stored meal."""

    def insert_meal(self, meal: RecordedMeal) -> None:
        """Append a meal; either the whole record is stored or nothing is."""

    def delete_meal(self, meal_id: str) -> bool:
        """Delete a meal by id and report whether one was removed."""

    def delete_before(self, cutoff: datetime) -> int:
        """Delete meals recorded before the cutoff and return how many."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MealStore:
    """Single source of truth for recorded meals.

    Storage failures never escape the public methods: writes report them in
    the returned ``SaveResult`` and reads fall back to empty results.
    """

    repository: MealRepository
    timezone: tzinfo | None = None
    retention_days: int = 30
    clock: Callable[[], datetime] = field(default=_utcnow)

    def save(self, meal_input: MealInput) -> SaveResult:
        """Assign an id and timestamp to the input and persist it."""
        meal = self._build_meal(meal_input)
        try:
            self.repository.insert_meal(meal)
        except MealStorageError as exc:
            _logger.exception("Failed to save meal %r", meal.name)
            return SaveResult(error=str(exc) or "Failed to save meal")
        self._prune(meal.timestamp)
        return SaveResult(meal=meal)

    def get_all(self) -> list[RecordedMeal]:
        """Return all meals; order is not guaranteed to be chronological."""
        try:
            return self.repository.list_meals()
        except MealStorageError:
            _logger.exception("Failed to load meals")
            return []

    def get_by_id(self, meal_id: str) -> RecordedMeal | None:
        for meal in self.get_all():
            if meal.id == meal_id:
                return meal
        return None

    def get_today(self) -> list[RecordedMeal]:
        """Return meals within the current local calendar day, oldest first."""
        now = self.local_now()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        meals = [
            meal
            for meal in self.get_all()
            if start <= meal.timestamp.astimezone(now.tzinfo) < end
        ]
        return sorted(meals, key=lambda meal: meal.timestamp)

    def local_now(self) -> datetime:
        """Current time in the store's local timezone, evaluated per call."""
        return self.clock().astimezone(self.local_timezone())

    def get_recent(self, limit: int = 20) -> list[RecordedMeal]:
        """Return the most recently recorded meals, newest first."""
        meals = sorted(self.get_all(), key=lambda meal: meal.timestamp, reverse=True)
        return meals[:limit]

    @staticmethod
    def get_summary(meals: list[RecordedMeal]) -> NutritionSummary:
        """Sum flattened nutrition; meals without it contribute zero."""
        calories = protein = carbs = fat = 0.0
        for meal in meals:
            if meal.nutrition_data is None:
                continue
            calories += meal.nutrition_data.calories
            protein += meal.nutrition_data.protein
            carbs += meal.nutrition_data.carbs
            fat += meal.nutrition_data.fat
        return NutritionSummary(
            calories=calories, protein=protein, carbs=carbs, fat=fat
        )

    def get_by_frequency(self) -> list[RecordedMeal]:
        """Rank distinct meal names by how often they were recorded.

        Each name is represented by its most recent meal. Ties are broken by
        the most recent timestamp.
        """
        return [meal for meal, _count in self.get_frequency_ranking()]

    def get_frequency_ranking(self) -> list[tuple[RecordedMeal, int]]:
        """Same ranking as ``get_by_frequency``, paired with each name's count."""
        meals = self.get_all()
        counts = Counter(meal.normalized_name for meal in meals)
        latest: dict[str, RecordedMeal] = {}
        for meal in meals:
            current = latest.get(meal.normalized_name)
            if current is None or meal.timestamp > current.timestamp:
                latest[meal.normalized_name] = meal
        ranked = sorted(
            latest.values(),
            key=lambda meal: (counts[meal.normalized_name], meal.timestamp),
            reverse=True,
        )
        return [(meal, counts[meal.normalized_name]) for meal in ranked]

    def get_frequency(self, name: str) -> int:
        """Count recorded meals sharing a name (case-insensitive, trimmed)."""
        target = normalize_meal_name(name)
        return sum(1 for meal in self.get_all() if meal.normalized_name == target)

    def is_favorite(self, name: str) -> bool:
        return self.get_frequency(name) >= FAVORITE_THRESHOLD

    def delete(self, meal_id: str) -> bool:
        """Delete a meal; unknown ids and storage failures return False."""
        try:
            removed = self.repository.delete_meal(meal_id)
        except MealStorageError:
            _logger.exception("Failed to delete meal %s", meal_id)
            return False
        if removed:
            _logger.info("Deleted meal %s", meal_id)
        return removed

    def _build_meal(self, meal_input: MealInput) -> RecordedMeal:
        full_data = _coerce_full_data(meal_input.full_nutrition_data)
        summary = NutritionSummary.coerce(meal_input.nutrition_data)
        if summary is None and full_data is not None:
            summary = full_data.summary()
        return RecordedMeal(
            id=str(uuid4()),
            name=str(meal_input.name or "").strip() or DEFAULT_MEAL_NAME,
            notes=str(meal_input.notes or ""),
            timestamp=self.clock(),
            image=meal_input.image or None,
            nutrition_data=summary,
            full_nutrition_data=full_data,
        )

    def _prune(self, now: datetime) -> None:
        if self.retention_days <= 0:
            return
        cutoff = now - timedelta(days=self.retention_days)
        try:
            removed = self.repository.delete_before(cutoff)
        except MealStorageError:
            _logger.exception("Failed to prune meals older than %s", cutoff)
            return
        if removed:
            _logger.info(
                "Pruned %s meals older than %s days", removed, self.retention_days
            )

    def local_timezone(self) -> tzinfo:
        if self.timezone is not None:
            return self.timezone
        return datetime.now().astimezone().tzinfo or UTC


def _coerce_full_data(raw: object) -> NutritionData | None:
    if raw is None or isinstance(raw, NutritionData):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return NutritionData.model_validate(raw)
    except ValidationError:
        _logger.warning("Dropping malformed nutrition detail for meal input")
        return None
