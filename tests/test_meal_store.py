"""Tests for the meal store."""

from datetime import UTC, datetime

from meal_capture.domain.meals import MealInput
from meal_capture.domain.nutrition import NutritionSummary
from meal_capture.services.meals import DEFAULT_MEAL_NAME, MealStore
from tests.conftest import (
    STRUCTURED_PAYLOAD,
    FailingMealRepository,
    FixedClock,
    InMemoryMealRepository,
)


def test_save_assigns_unique_ids_and_clock_timestamp(
    meal_store: MealStore, clock: FixedClock
) -> None:
    first = meal_store.save(MealInput(name="Toast"))
    second = meal_store.save(MealInput(name="Toast"))

    assert first.ok
    assert second.ok
    assert first.meal.id != second.meal.id
    assert first.meal.timestamp == clock.now
    assert len(meal_store.get_all()) == 2


def test_save_defaults_blank_name(meal_store: MealStore) -> None:
    result = meal_store.save(MealInput(name="   "))

    assert result.meal.name == DEFAULT_MEAL_NAME


def test_save_coerces_bad_numbers_to_zero(meal_store: MealStore) -> None:
    result = meal_store.save(
        MealInput(
            name="Soup",
            nutrition_data={
                "calories": "abc",
                "protein": -4,
                "carbs": "12",
                "fat": None,
            },
        )
    )

    assert result.meal.nutrition_data == NutritionSummary(
        calories=0.0, protein=0.0, carbs=12.0, fat=0.0
    )


def test_save_derives_summary_from_full_data(meal_store: MealStore) -> None:
    result = meal_store.save(
        MealInput(name="Oatmeal", full_nutrition_data=dict(STRUCTURED_PAYLOAD))
    )

    assert result.meal.full_nutrition_data is not None
    assert result.meal.nutrition_data == NutritionSummary(
        calories=350, protein=12, carbs=58, fat=7
    )


def test_save_keeps_full_data_with_null_fields(meal_store: MealStore) -> None:
    result = meal_store.save(
        MealInput(
            name="Oatmeal",
            full_nutrition_data={
                **STRUCTURED_PAYLOAD,
                "portionSize": None,
                "mealName": None,
                "micronutrients": None,
            },
        )
    )

    assert result.ok
    assert result.meal.full_nutrition_data is not None
    assert result.meal.full_nutrition_data.portion_size == ""
    assert result.meal.nutrition_data == NutritionSummary(
        calories=350, protein=12, carbs=58, fat=7
    )


def test_save_drops_malformed_full_data(meal_store: MealStore) -> None:
    result = meal_store.save(
        MealInput(name="Oatmeal", full_nutrition_data={"macros": "not-an-object"})
    )

    assert result.ok
    assert result.meal.full_nutrition_data is None


def test_save_reports_storage_failure() -> None:
    store = MealStore(repository=FailingMealRepository())

    result = store.save(MealInput(name="Toast"))

    assert not result.ok
    assert result.error == "storage unavailable"


def test_reads_fall_back_to_empty_on_storage_failure() -> None:
    store = MealStore(repository=FailingMealRepository(), timezone=UTC)

    assert store.get_all() == []
    assert store.get_today() == []
    assert store.get_by_frequency() == []
    assert store.delete("missing") is False


def test_get_summary_sums_and_skips_meals_without_nutrition(
    meal_store: MealStore,
) -> None:
    meal_store.save(
        MealInput(
            name="Eggs",
            nutrition_data={"calories": 200, "protein": 14, "carbs": 2, "fat": 15},
        )
    )
    meal_store.save(
        MealInput(
            name="Rice",
            nutrition_data={"calories": 300, "protein": 6, "carbs": 65, "fat": 1},
        )
    )
    meal_store.save(MealInput(name="Water"))

    summary = meal_store.get_summary(meal_store.get_all())

    assert summary == NutritionSummary(calories=500, protein=20, carbs=67, fat=16)
    assert meal_store.get_summary([]) == NutritionSummary()


def test_get_today_uses_local_day_boundaries(
    meal_store: MealStore, clock: FixedClock
) -> None:
    clock.now = datetime(2024, 5, 9, 23, 59, 59, tzinfo=UTC)
    meal_store.save(MealInput(name="Late snack"))
    clock.now = datetime(2024, 5, 10, 0, 0, 1, tzinfo=UTC)
    meal_store.save(MealInput(name="Midnight toast"))
    clock.now = datetime(2024, 5, 10, 8, tzinfo=UTC)
    meal_store.save(MealInput(name="Breakfast"))
    clock.now = datetime(2024, 5, 10, 12, tzinfo=UTC)

    today = meal_store.get_today()

    assert [meal.name for meal in today] == ["Midnight toast", "Breakfast"]


def test_get_today_reevaluates_day_per_call(
    meal_store: MealStore, clock: FixedClock
) -> None:
    meal_store.save(MealInput(name="Lunch"))
    assert len(meal_store.get_today()) == 1

    clock.advance(days=1)

    assert meal_store.get_today() == []


def test_get_by_frequency_ranks_by_count_then_recency(
    meal_store: MealStore, clock: FixedClock
) -> None:
    for name in ["Oatmeal", "oatmeal ", "Toast", "OATMEAL"]:
        meal_store.save(MealInput(name=name))
        clock.advance(minutes=5)
    meal_store.save(MealInput(name="Salad"))

    ranked = meal_store.get_by_frequency()

    assert [meal.normalized_name for meal in ranked] == ["oatmeal", "salad", "toast"]
    assert ranked[0].name == "OATMEAL"
    assert [
        (meal.normalized_name, count)
        for meal, count in meal_store.get_frequency_ranking()
    ] == [("oatmeal", 3), ("salad", 1), ("toast", 1)]
    assert meal_store.get_frequency(" oatmeal") == 3
    assert meal_store.is_favorite("Oatmeal")
    assert not meal_store.is_favorite("Toast")


def test_get_recent_returns_newest_first(
    meal_store: MealStore, clock: FixedClock
) -> None:
    for name in ["First", "Second", "Third"]:
        meal_store.save(MealInput(name=name))
        clock.advance(minutes=1)

    recent = meal_store.get_recent(limit=2)

    assert [meal.name for meal in recent] == ["Third", "Second"]


def test_delete_missing_id_leaves_store_unchanged(meal_store: MealStore) -> None:
    saved = meal_store.save(MealInput(name="Toast")).meal

    assert meal_store.delete("missing") is False
    assert meal_store.get_all() == [saved]

    assert meal_store.delete(saved.id) is True
    assert meal_store.get_by_id(saved.id) is None


def test_save_prunes_meals_past_retention(
    meal_repository: InMemoryMealRepository, clock: FixedClock
) -> None:
    store = MealStore(
        repository=meal_repository, timezone=UTC, retention_days=30, clock=clock
    )
    store.save(MealInput(name="Old"))
    clock.advance(days=31)
    store.save(MealInput(name="New"))

    assert [meal.name for meal in store.get_all()] == ["New"]


def test_retention_zero_keeps_everything(
    meal_repository: InMemoryMealRepository, clock: FixedClock
) -> None:
    store = MealStore(repository=meal_repository, retention_days=0, clock=clock)
    store.save(MealInput(name="Old"))
    clock.advance(days=90)
    store.save(MealInput(name="New"))

    assert len(store.get_all()) == 2
