"""Supabase repository for recorded meals."""

from dataclasses import dataclass
from datetime import datetime

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from meal_capture.adapters.meal_records import (
    dump_full_nutrition,
    parse_full_nutrition,
    parse_timestamp,
)
from meal_capture.domain.meals import RecordedMeal
from meal_capture.domain.nutrition import NutritionSummary
from meal_capture.services.meals import MealRepository, MealStorageError

_TABLE = "recorded_meals"
_COLUMNS = "id, name, notes, logged_at, image, nutrition_data, full_nutrition_data"


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for recorded meals."""

    client: Client

    def list_meals(self) -> list[RecordedMeal]:
        """Return all meal rows."""
        try:
            response = self.client.table(_TABLE).select(_COLUMNS).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise MealStorageError("Failed to load meals") from exc
        return [_parse_row(row) for row in response.data or []]

    def insert_meal(self, meal: RecordedMeal) -> None:
        """Insert a meal row."""
        try:
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "id": meal.id,
                        "name": meal.name,
                        "notes": meal.notes,
                        "logged_at": meal.timestamp.isoformat(),
                        "image": meal.image,
                        "nutrition_data": (
                            meal.nutrition_data.as_dict()
                            if meal.nutrition_data
                            else None
                        ),
                        "full_nutrition_data": dump_full_nutrition(
                            meal.full_nutrition_data
                        ),
                    }
                )
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise MealStorageError("Failed to save meal") from exc
        if not response.data:
            raise MealStorageError("Failed to save meal")

    def delete_meal(self, meal_id: str) -> bool:
        """Delete a meal row by id."""
        try:
            response = self.client.table(_TABLE).delete().eq("id", meal_id).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise MealStorageError("Failed to delete meal") from exc
        return bool(response.data)

    def delete_before(self, cutoff: datetime) -> int:
        """Delete meal rows logged before the cutoff."""
        try:
            response = (
                self.client.table(_TABLE)
                .delete()
                .lt("logged_at", cutoff.isoformat())
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise MealStorageError("Failed to prune meals") from exc
        return len(response.data or [])


def _parse_row(row: dict[str, object]) -> RecordedMeal:
    return RecordedMeal(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        notes=str(row.get("notes") or ""),
        timestamp=parse_timestamp(row["logged_at"]),
        image=str(row["image"]) if row.get("image") else None,
        nutrition_data=NutritionSummary.coerce(row.get("nutrition_data")),
        full_nutrition_data=parse_full_nutrition(row.get("full_nutrition_data")),
    )
