"""Nutrition analysis models."""

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_HEALTH_SCORE = 10.0


def coerce_amount(value: object) -> float:
    """Coerce a loosely typed amount to a non-negative float."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Macros(_CamelModel):
    """Macronutrients in grams."""

    protein: float = 0.0
    carbohydrates: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _non_negative(cls, value: object) -> float:
        return coerce_amount(value)


class Micronutrients(_CamelModel):
    """Optional micronutrients in milligrams."""

    sodium: float | None = None
    potassium: float | None = None
    vitamin_c: float | None = None
    calcium: float | None = None
    iron: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _non_negative(cls, value: object) -> float | None:
        if value is None:
            return None
        return coerce_amount(value)


class RecommendationType(StrEnum):
    POSITIVE = "positive"
    CAUTION = "caution"
    GENERAL = "general"


class Recommendation(_CamelModel):
    """A normalised recommendation; bare strings become general advice."""

    text: str
    type: RecommendationType = RecommendationType.GENERAL


class DataSource(_CamelModel):
    """A web source cited by the analysis."""

    url: str
    title: str | None = None
    domain: str | None = None
    relevance: Literal["high", "medium", "low"] = "medium"
    snippet: str | None = None

    @field_validator("relevance", mode="before")
    @classmethod
    def _known_relevance(cls, value: object) -> str:
        if isinstance(value, str) and value.lower() in {"high", "medium", "low"}:
            return value.lower()
        return "medium"


MealType = Literal["breakfast", "lunch", "dinner", "snack", "other"]


class NutritionData(_CamelModel):
    """Structured nutrition breakdown produced by an analysis."""

    meal_name: str = ""
    total_calories: float = 0.0
    macros: Macros = Field(default_factory=Macros)
    micronutrients: Micronutrients = Field(default_factory=Micronutrients)
    ingredients: list[str] = Field(default_factory=list)
    health_score: float = 0.0
    recommendations: list[Recommendation] = Field(default_factory=list)
    portion_size: str = ""
    meal_type: MealType = "other"
    sources: list[DataSource] = Field(default_factory=list)

    @field_validator("meal_name", "portion_size", mode="before")
    @classmethod
    def _text_or_blank(cls, value: object) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("macros", "micronutrients", mode="before")
    @classmethod
    def _null_breakdown_as_empty(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("total_calories", mode="before")
    @classmethod
    def _non_negative_calories(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("health_score", mode="before")
    @classmethod
    def _clamp_health_score(cls, value: object) -> float:
        return min(coerce_amount(value), MAX_HEALTH_SCORE)

    @field_validator("meal_type", mode="before")
    @classmethod
    def _known_meal_type(cls, value: object) -> str:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"breakfast", "lunch", "dinner", "snack"}:
                return lowered
        return "other"

    @field_validator("ingredients", mode="before")
    @classmethod
    def _string_ingredients(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None]

    @field_validator("recommendations", mode="before")
    @classmethod
    def _normalize_recommendations(cls, value: object) -> list[dict[str, str]]:
        if not isinstance(value, list):
            return []
        return [
            normalized
            for item in value
            if (normalized := _normalize_recommendation(item)) is not None
        ]

    @field_validator("sources", mode="before")
    @classmethod
    def _drop_sources_without_url(cls, value: object) -> list[object]:
        if not isinstance(value, list):
            return []
        return [
            item for item in value if isinstance(item, dict) and item.get("url")
        ]

    def summary(self) -> "NutritionSummary":
        """Flatten into the summary stored with a recorded meal."""
        return NutritionSummary(
            calories=self.total_calories,
            protein=self.macros.protein,
            carbs=self.macros.carbohydrates,
            fat=self.macros.fat,
        )


def _normalize_recommendation(item: object) -> dict[str, str] | None:
    if isinstance(item, str):
        text = item.strip()
        return {"text": text, "type": "general"} if text else None
    if isinstance(item, Recommendation):
        return {"text": item.text, "type": item.type.value}
    if isinstance(item, dict) and item.get("text"):
        raw_type = str(item.get("type") or "").lower()
        if raw_type == "positive":
            kind = "positive"
        elif raw_type in {"caution", "warning"}:
            kind = "caution"
        else:
            kind = "general"
        return {"text": str(item["text"]), "type": kind}
    return None


@dataclass(frozen=True)
class NutritionSummary:
    """Flattened calories and macros used for aggregation."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def coerce(cls, raw: object) -> "NutritionSummary | None":
        """Build a summary from loose input, clamping bad numbers to zero."""
        if isinstance(raw, NutritionSummary):
            return cls(
                calories=coerce_amount(raw.calories),
                protein=coerce_amount(raw.protein),
                carbs=coerce_amount(raw.carbs),
                fat=coerce_amount(raw.fat),
            )
        if isinstance(raw, dict):
            return cls(
                calories=coerce_amount(raw.get("calories")),
                protein=coerce_amount(raw.get("protein")),
                carbs=coerce_amount(raw.get("carbs")),
                fat=coerce_amount(raw.get("fat")),
            )
        return None

    def as_dict(self) -> dict[str, float]:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }
