"""Today's nutrition progress computed from the meal store."""

from dataclasses import dataclass
from datetime import date, tzinfo

from meal_capture.domain.meals import MealGroup, RecordedMeal
from meal_capture.domain.nutrition import NutritionSummary
from meal_capture.services.meals import MealStore

BREAKFAST_CUTOFF = 11
LUNCH_CUTOFF = 15
DINNER_CUTOFF = 19


@dataclass(frozen=True)
class DailyGoals:
    """Daily calorie and macro targets."""

    calories: float = 2000
    protein_g: float = 120
    carbs_g: float = 250
    fat_g: float = 70


@dataclass(frozen=True)
class TodayProgress:
    """Consumed totals against goals for the current local day."""

    day: date
    consumed: NutritionSummary
    goals: DailyGoals
    calories_remaining: float
    groups: list[MealGroup]


@dataclass
class StatsService:
    """Service for views derived from today's meals.

    Always reads through the store so views stay consistent after saves and
    deletes.
    """

    store: MealStore
    goals: DailyGoals

    def get_today_progress(self) -> TodayProgress:
        """Return today's totals, remaining calories and grouped meals."""
        meals = self.store.get_today()
        consumed = self.store.get_summary(meals)
        return TodayProgress(
            day=self.store.local_now().date(),
            consumed=consumed,
            goals=self.goals,
            calories_remaining=max(0.0, self.goals.calories - consumed.calories),
            groups=group_by_meal_type(meals, self.store.local_timezone()),
        )


def group_by_meal_type(meals: list[RecordedMeal], tz: tzinfo) -> list[MealGroup]:
    """Group meals by type, keeping the order in which types first appear."""
    groups: dict[str, list[RecordedMeal]] = {}
    for meal in meals:
        groups.setdefault(meal_type_for(meal, tz), []).append(meal)
    return [MealGroup(meal_type=name, meals=items) for name, items in groups.items()]


def meal_type_for(meal: RecordedMeal, tz: tzinfo) -> str:
    """Use the analysed meal type, else derive one from the local hour."""
    if meal.full_nutrition_data is not None:
        return meal.full_nutrition_data.meal_type.capitalize()
    hour = meal.timestamp.astimezone(tz).hour
    if hour < BREAKFAST_CUTOFF:
        return "Breakfast"
    if hour < LUNCH_CUTOFF:
        return "Lunch"
    if hour < DINNER_CUTOFF:
        return "Dinner"
    return "Snack"
