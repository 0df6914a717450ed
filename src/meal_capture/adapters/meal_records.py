"""Serialization of recorded meals for storage backends."""

import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from meal_capture.domain.meals import RecordedMeal
from meal_capture.domain.nutrition import NutritionData, NutritionSummary

_logger = logging.getLogger(__name__)


def meal_to_record(meal: RecordedMeal) -> dict[str, object]:
    """Serialize a meal to a JSON-compatible record."""
    return {
        "id": meal.id,
        "name": meal.name,
        "notes": meal.notes,
        "timestamp": meal.timestamp.isoformat(),
        "image": meal.image,
        "nutritionData": (
            meal.nutrition_data.as_dict() if meal.nutrition_data else None
        ),
        "fullNutritionData": dump_full_nutrition(meal.full_nutrition_data),
    }


def meal_from_record(record: dict[str, object]) -> RecordedMeal:
    """Parse a stored record; unknown keys are ignored."""
    return RecordedMeal(
        id=str(record["id"]),
        name=str(record.get("name") or ""),
        notes=str(record.get("notes") or ""),
        timestamp=parse_timestamp(record["timestamp"]),
        image=_optional_str(record.get("image")),
        nutrition_data=NutritionSummary.coerce(record.get("nutritionData")),
        full_nutrition_data=parse_full_nutrition(record.get("fullNutritionData")),
    )


def dump_full_nutrition(data: NutritionData | None) -> dict[str, object] | None:
    if data is None:
        return None
    return data.model_dump(mode="json", by_alias=True)


def parse_full_nutrition(raw: object) -> NutritionData | None:
    if not isinstance(raw, dict):
        return None
    try:
        return NutritionData.model_validate(raw)
    except ValidationError:
        _logger.warning("Ignoring unreadable nutrition detail in stored meal")
        return None


def parse_timestamp(raw: object) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    if isinstance(raw, datetime):
        parsed = raw
    else:
        parsed = datetime.fromisoformat(str(raw))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
