"""Tests for today's progress view."""

from datetime import UTC, datetime

from meal_capture.domain.meals import MealInput
from meal_capture.services.meals import MealStore
from meal_capture.services.stats import DailyGoals, StatsService, meal_type_for
from tests.conftest import STRUCTURED_PAYLOAD, FixedClock


def _save_at(store: MealStore, clock: FixedClock, hour: int, **fields) -> None:
    clock.now = datetime(2024, 5, 10, hour, tzinfo=UTC)
    store.save(MealInput(**fields))


def test_today_progress_totals_and_remaining(
    meal_store: MealStore, clock: FixedClock
) -> None:
    _save_at(
        meal_store,
        clock,
        8,
        name="Oatmeal",
        full_nutrition_data=dict(STRUCTURED_PAYLOAD),
    )
    _save_at(
        meal_store,
        clock,
        13,
        name="Sandwich",
        nutrition_data={"calories": 550, "protein": 30, "carbs": 60, "fat": 20},
    )
    clock.now = datetime(2024, 5, 10, 21, tzinfo=UTC)
    service = StatsService(store=meal_store, goals=DailyGoals(calories=2000))

    progress = service.get_today_progress()

    assert progress.day.isoformat() == "2024-05-10"
    assert progress.consumed.calories == 900
    assert progress.consumed.protein == 42
    assert progress.calories_remaining == 1100
    assert [group.meal_type for group in progress.groups] == ["Breakfast", "Lunch"]


def test_calories_remaining_never_negative(
    meal_store: MealStore, clock: FixedClock
) -> None:
    _save_at(
        meal_store, clock, 19, name="Feast", nutrition_data={"calories": 2600}
    )
    service = StatsService(store=meal_store, goals=DailyGoals(calories=2000))

    progress = service.get_today_progress()

    assert progress.calories_remaining == 0
    assert progress.groups[0].meal_type == "Snack"
    assert progress.groups[0].count == 1


def test_meal_type_from_hour_cutoffs(meal_store: MealStore, clock: FixedClock) -> None:
    for hour in (7, 11, 15, 19):
        _save_at(meal_store, clock, hour, name=f"Meal at {hour}")

    types = [meal_type_for(meal, UTC) for meal in meal_store.get_today()]

    assert types == ["Breakfast", "Lunch", "Dinner", "Snack"]


def test_groups_keep_first_seen_order(meal_store: MealStore, clock: FixedClock) -> None:
    _save_at(meal_store, clock, 12, name="Lunch one")
    _save_at(meal_store, clock, 16, name="Dinner one")
    _save_at(meal_store, clock, 13, name="Lunch two")
    clock.now = datetime(2024, 5, 10, 22, tzinfo=UTC)

    progress = StatsService(store=meal_store, goals=DailyGoals()).get_today_progress()

    assert [(group.meal_type, group.count) for group in progress.groups] == [
        ("Lunch", 2),
        ("Dinner", 1),
    ]
