"""Domain models for meal analysis requests and progress."""

from dataclasses import dataclass
from enum import StrEnum

from meal_capture.domain.nutrition import NutritionData


class AnalysisStage(StrEnum):
    """Ordered progress stages of a single analysis."""

    IDLE = "idle"
    ANALYZING_IMAGE = "analyzing_image"
    ANALYZING_MEAL = "analyzing_meal"
    SEARCHING_WEB = "searching_web"
    CALCULATING_NUTRITION = "calculating_nutrition"
    FINALIZING = "finalizing"


class ErrorCode(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    NO_DATA = "NO_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN = "UNKNOWN"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class StageMessage:
    """User-facing copy for a stage."""

    primary: str
    secondary: str


STAGE_PROGRESS: dict[AnalysisStage, int] = {
    AnalysisStage.IDLE: 0,
    AnalysisStage.ANALYZING_IMAGE: 20,
    AnalysisStage.ANALYZING_MEAL: 40,
    AnalysisStage.SEARCHING_WEB: 60,
    AnalysisStage.CALCULATING_NUTRITION: 80,
    AnalysisStage.FINALIZING: 95,
}

STAGE_MESSAGES: dict[AnalysisStage, StageMessage] = {
    AnalysisStage.IDLE: StageMessage("", ""),
    AnalysisStage.ANALYZING_IMAGE: StageMessage(
        "Analyzing your meal image...", "Identifying ingredients and portions"
    ),
    AnalysisStage.ANALYZING_MEAL: StageMessage(
        "Understanding your meal...", "Processing ingredients and context"
    ),
    AnalysisStage.SEARCHING_WEB: StageMessage(
        "Searching the web for details...", "Finding accurate nutrition information"
    ),
    AnalysisStage.CALCULATING_NUTRITION: StageMessage(
        "Calculating nutrition facts...", "Analyzing macros and micronutrients"
    ),
    AnalysisStage.FINALIZING: StageMessage(
        "Finalizing your meal data...", "Almost ready to save!"
    ),
}

# Seconds spent in each stage before advancing, unless the call finishes first.
STAGE_DURATIONS: dict[AnalysisStage, float] = {
    AnalysisStage.ANALYZING_IMAGE: 0.8,
    AnalysisStage.ANALYZING_MEAL: 1.2,
    AnalysisStage.SEARCHING_WEB: 2.0,
    AnalysisStage.CALCULATING_NUTRITION: 1.0,
    AnalysisStage.FINALIZING: 0.6,
}


def stage_plan(has_image: bool) -> list[AnalysisStage]:
    """Return the stages an analysis walks through, in order."""
    stages = [
        AnalysisStage.ANALYZING_MEAL,
        AnalysisStage.SEARCHING_WEB,
        AnalysisStage.CALCULATING_NUTRITION,
        AnalysisStage.FINALIZING,
    ]
    if has_image:
        return [AnalysisStage.ANALYZING_IMAGE, *stages]
    return stages


@dataclass(frozen=True)
class ImageAttachment:
    """Raw image submitted alongside a meal description."""

    data: bytes
    name: str = "meal-image"
    content_type: str | None = None


@dataclass(frozen=True)
class AnalysisRequest:
    message: str = ""
    image: ImageAttachment | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.message.strip()) or self.image is not None


@dataclass(frozen=True)
class AnalysisResult:
    """Terminal outcome of an analysis; exactly one of data/error is set."""

    data: NutritionData | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    retryable: bool = False

    @classmethod
    def success(cls, data: NutritionData) -> "AnalysisResult":
        return cls(data=data)

    @classmethod
    def failure(
        cls, code: ErrorCode, message: str, *, retryable: bool
    ) -> "AnalysisResult":
        return cls(error=message, error_code=code, retryable=retryable)

    @property
    def ok(self) -> bool:
        return self.data is not None

    @property
    def cancelled(self) -> bool:
        return self.error_code == ErrorCode.CANCELLED
