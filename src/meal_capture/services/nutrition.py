"""Extraction of nutrition data from analysis endpoint responses."""

import json
import logging
import re

from pydantic import ValidationError

from meal_capture.domain.nutrition import Macros, NutritionData, coerce_amount

_FLAT_KEYS = ("calories", "protein", "carbs", "carbohydrates", "fat")

_TEXT_PATTERNS = {
    "calories": re.compile(r"(\d+(?:\.\d+)?)\s*(?:kcal|calorie)", re.IGNORECASE),
    "protein": re.compile(r"(\d+(?:\.\d+)?)\s*g?\s*(?:of\s+)?protein", re.IGNORECASE),
    "carbs": re.compile(r"(\d+(?:\.\d+)?)\s*g?\s*(?:of\s+)?carb", re.IGNORECASE),
    "fat": re.compile(r"(\d+(?:\.\d+)?)\s*g?\s*(?:of\s+)?fat", re.IGNORECASE),
}

_logger = logging.getLogger(__name__)


def extract_nutrition(payload: object) -> NutritionData | None:
    """Return nutrition data from any supported response shape.

    Supported shapes, tried in order: the structured object with
    ``totalCalories`` and nested ``macros``; flat ``calories``/``protein``/
    ``carbs``/``fat`` keys; free text mentioning "N calories", "Ng protein"
    and so on. Returns None when nothing usable is found.
    """
    if isinstance(payload, dict):
        structured = _from_structured(payload)
        if structured is not None:
            return structured
        flat = _from_flat(payload)
        if flat is not None:
            return flat
        return _from_text(json.dumps(payload))
    if isinstance(payload, str):
        return _from_text(payload)
    if payload is None:
        return None
    return _from_text(json.dumps(payload, default=str))


def _from_structured(payload: dict[str, object]) -> NutritionData | None:
    macros = payload.get("macros")
    if payload.get("totalCalories") is None or not isinstance(macros, dict):
        return None
    if "carbohydrates" not in macros and "carbs" in macros:
        payload = {**payload, "macros": {**macros, "carbohydrates": macros["carbs"]}}
    try:
        return NutritionData.model_validate(payload)
    except ValidationError:
        _logger.warning(
            "Structured nutrition payload failed validation, keeping totals only"
        )
    return NutritionData(
        total_calories=coerce_amount(payload.get("totalCalories")),
        macros=Macros.model_validate(payload["macros"]),
    )


def _from_flat(payload: dict[str, object]) -> NutritionData | None:
    if not any(coerce_amount(payload.get(key)) > 0 for key in _FLAT_KEYS):
        return None
    carbs = payload.get("carbs")
    if carbs is None:
        carbs = payload.get("carbohydrates")
    name = payload.get("mealName") or payload.get("name") or ""
    return NutritionData(
        meal_name=str(name),
        total_calories=coerce_amount(payload.get("calories")),
        macros=Macros(
            protein=coerce_amount(payload.get("protein")),
            carbohydrates=coerce_amount(carbs),
            fat=coerce_amount(payload.get("fat")),
        ),
    )


def _from_text(text: str) -> NutritionData | None:
    values: dict[str, float] = {}
    for key, pattern in _TEXT_PATTERNS.items():
        match = pattern.search(text)
        if match:
            values[key] = float(match.group(1))
    if not values:
        return None
    return NutritionData(
        total_calories=values.get("calories", 0.0),
        macros=Macros(
            protein=values.get("protein", 0.0),
            carbohydrates=values.get("carbs", 0.0),
            fat=values.get("fat", 0.0),
        ),
    )
