"""Domain models for recorded meals."""

from dataclasses import dataclass, field
from datetime import datetime

from meal_capture.domain.nutrition import NutritionData, NutritionSummary


@dataclass(frozen=True)
class RecordedMeal:
    """A persisted meal entry."""

    id: str
    name: str
    notes: str
    timestamp: datetime
    image: str | None = None
    nutrition_data: NutritionSummary | None = None
    full_nutrition_data: NutritionData | None = None

    @property
    def normalized_name(self) -> str:
        return normalize_meal_name(self.name)


@dataclass(frozen=True)
class MealInput:
    """Caller-supplied content for a new meal.

    Nutrition fields accept loose mappings; the store coerces them before
    anything is written.
    """

    name: str
    notes: str = ""
    image: str | None = None
    nutrition_data: NutritionSummary | dict[str, object] | None = None
    full_nutrition_data: NutritionData | dict[str, object] | None = None

    @classmethod
    def from_history(cls, meal: RecordedMeal) -> "MealInput":
        """Copy a recorded meal's content for re-adding it today."""
        return cls(
            name=meal.name,
            notes=f"Added from history: {meal.notes}",
            image=meal.image,
            nutrition_data=meal.nutrition_data,
            full_nutrition_data=meal.full_nutrition_data,
        )


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a store write."""

    meal: RecordedMeal | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.meal is not None and self.error is None


@dataclass(frozen=True)
class MealGroup:
    """Meals sharing a meal type within a day."""

    meal_type: str
    meals: list[RecordedMeal] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.meals)


def normalize_meal_name(name: str) -> str:
    return name.strip().lower()
