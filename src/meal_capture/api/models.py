"""Pydantic request and response models for the HTTP surface."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from meal_capture.domain.meals import MealGroup, RecordedMeal, SaveResult
from meal_capture.domain.nutrition import NutritionSummary
from meal_capture.services.capture import CaptureOutcome
from meal_capture.services.stats import TodayProgress


class CaptureRequest(BaseModel):
    """Draft content submitted for analysis."""

    text: str = ""
    transcript: str | None = None
    image_base64: str | None = None
    image_name: str | None = None
    image_content_type: str | None = None
    image_url: str | None = None


class FromHistoryRequest(BaseModel):
    meal_ids: list[str] = Field(default_factory=list)


class SummaryModel(BaseModel):
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def from_summary(cls, summary: NutritionSummary) -> "SummaryModel":
        return cls(**summary.as_dict())


class MealModel(BaseModel):
    """Recorded meal as returned to clients."""

    id: str
    name: str
    notes: str
    timestamp: datetime
    image: str | None = None
    nutrition_data: SummaryModel | None = None
    full_nutrition_data: dict[str, object] | None = None

    @classmethod
    def from_meal(cls, meal: RecordedMeal) -> "MealModel":
        return cls(
            id=meal.id,
            name=meal.name,
            notes=meal.notes,
            timestamp=meal.timestamp,
            image=meal.image,
            nutrition_data=(
                SummaryModel.from_summary(meal.nutrition_data)
                if meal.nutrition_data
                else None
            ),
            full_nutrition_data=(
                meal.full_nutrition_data.model_dump(mode="json", by_alias=True)
                if meal.full_nutrition_data
                else None
            ),
        )


class FrequentMealModel(MealModel):
    count: int
    favorite: bool


class CaptureResponse(BaseModel):
    """Outcome of a capture submission."""

    status: str
    meal: MealModel | None = None
    error: str | None = None
    error_code: str | None = None
    retryable: bool = False
    draft_preserved: bool = False

    @classmethod
    def from_outcome(cls, outcome: CaptureOutcome) -> "CaptureResponse":
        return cls(
            status=outcome.status.value,
            meal=MealModel.from_meal(outcome.meal) if outcome.meal else None,
            error=outcome.error,
            error_code=outcome.error_code.value if outcome.error_code else None,
            retryable=outcome.retryable,
            draft_preserved=outcome.draft_preserved,
        )


class CaptureStatusResponse(BaseModel):
    stage: str
    progress: int
    primary_message: str
    secondary_message: str
    is_loading: bool
    can_submit: bool


class HistoryItemModel(BaseModel):
    meal_id: str
    meal: MealModel | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, meal_id: str, result: SaveResult) -> "HistoryItemModel":
        return cls(
            meal_id=meal_id,
            meal=MealModel.from_meal(result.meal) if result.meal else None,
            error=result.error,
        )


class FromHistoryResponse(BaseModel):
    added: int
    results: list[HistoryItemModel]


class MealGroupModel(BaseModel):
    meal_type: str
    count: int
    meals: list[MealModel]

    @classmethod
    def from_group(cls, group: MealGroup) -> "MealGroupModel":
        return cls(
            meal_type=group.meal_type,
            count=group.count,
            meals=[MealModel.from_meal(meal) for meal in group.meals],
        )


class GoalsModel(BaseModel):
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float


class TodayProgressResponse(BaseModel):
    """Today's totals against goals."""

    day: date
    consumed: SummaryModel
    goals: GoalsModel
    calories_remaining: float
    groups: list[MealGroupModel]

    @classmethod
    def from_progress(cls, progress: TodayProgress) -> "TodayProgressResponse":
        return cls(
            day=progress.day,
            consumed=SummaryModel.from_summary(progress.consumed),
            goals=GoalsModel(
                calories=progress.goals.calories,
                protein_g=progress.goals.protein_g,
                carbs_g=progress.goals.carbs_g,
                fat_g=progress.goals.fat_g,
            ),
            calories_remaining=progress.calories_remaining,
            groups=[MealGroupModel.from_group(group) for group in progress.groups],
        )
