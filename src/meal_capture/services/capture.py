"""Capture orchestration: draft input, analysis and persistence."""

import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from enum import StrEnum

from meal_capture.domain.analysis import (
    AnalysisRequest,
    AnalysisResult,
    ErrorCode,
    ImageAttachment,
)
from meal_capture.domain.meals import MealInput, RecordedMeal, SaveResult
from meal_capture.domain.nutrition import NutritionData
from meal_capture.services.analysis import AnalysisPipeline
from meal_capture.services.events import MealEvent, MealEventBus
from meal_capture.services.meals import DEFAULT_MEAL_NAME, MealStore

MEAL_NAME_LENGTH = 50

_logger = logging.getLogger(__name__)


@dataclass
class CaptureDraft:
    """User input waiting to be submitted."""

    text: str = ""
    transcript: str = ""
    image: ImageAttachment | None = None
    image_url: str | None = None

    @property
    def message(self) -> str:
        """Typed text wins over the voice transcript."""
        return self.text.strip() or self.transcript.strip()

    @property
    def has_content(self) -> bool:
        return bool(self.message) or self.image is not None

    def clear(self) -> None:
        self.text = ""
        self.transcript = ""
        self.image = None
        self.image_url = None


class CaptureStatus(StrEnum):
    SAVED = "saved"
    REJECTED = "rejected"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CaptureOutcome:
    """What happened to a submission and whether the draft survived it."""

    status: CaptureStatus
    meal: RecordedMeal | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    retryable: bool = False
    draft_preserved: bool = False


@dataclass
class CaptureOrchestrator:
    """Submits drafts for analysis and records successful results."""

    pipeline: AnalysisPipeline
    store: MealStore
    events: MealEventBus
    draft: CaptureDraft = field(default_factory=CaptureDraft)
    _submitting: bool = field(default=False, init=False)
    _recording: bool = field(default=False, init=False)
    _cancel_requested: bool = field(default=False, init=False)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def in_flight(self) -> bool:
        return self._submitting or self.pipeline.is_loading

    @property
    def can_submit(self) -> bool:
        return self.draft.has_content and not self.in_flight and not self._recording

    def set_text(self, text: str) -> None:
        self.draft.text = text

    def attach_image(
        self, image: ImageAttachment, image_url: str | None = None
    ) -> None:
        self.draft.image = image
        self.draft.image_url = image_url

    def remove_image(self) -> None:
        self.draft.image = None
        self.draft.image_url = None

    def start_recording(self) -> None:
        """Mark voice capture as active; submissions wait until it stops."""
        self._recording = True

    def stop_recording(self, transcript: str = "") -> None:
        self._recording = False
        if transcript.strip():
            self.draft.transcript = transcript.strip()

    def submit(self) -> Coroutine[object, object, CaptureOutcome]:
        """Analyze the current draft and save the result.

        The submission is claimed as soon as this is called, before the
        returned coroutine first runs, so a ``cancel()`` issued between
        ``asyncio.create_task(orchestrator.submit())`` and the task starting
        still cancels it. Await the returned coroutine or wrap it in a task.
        """
        rejection = self._rejection_reason()
        if rejection is not None:
            return _resolved(
                CaptureOutcome(
                    status=CaptureStatus.REJECTED,
                    error=rejection,
                    draft_preserved=True,
                )
            )
        self._submitting = True
        self._cancel_requested = False
        request = AnalysisRequest(message=self.draft.message, image=self.draft.image)
        return self._run_submission(request)

    async def _run_submission(self, request: AnalysisRequest) -> CaptureOutcome:
        message = request.message
        try:
            if self._cancel_requested:
                result = _cancelled_result()
            else:
                result = await self.pipeline.analyze(request)
        finally:
            self._submitting = False

        if result.cancelled:
            return CaptureOutcome(
                status=CaptureStatus.CANCELLED,
                error=result.error,
                error_code=result.error_code,
                draft_preserved=True,
            )
        if result.data is None:
            return self._failed(result.error, result.error_code, result.retryable)

        saved = self.store.save(
            MealInput(
                name=meal_name(result.data, message),
                notes=message,
                image=self.draft.image_url,
                nutrition_data=result.data.summary(),
                full_nutrition_data=result.data,
            )
        )
        if not saved.ok:
            return self._failed(saved.error, None, retryable=True)

        self.draft.clear()
        self.events.publish(MealEvent.SAVED)
        _logger.info("Captured meal %s (%r)", saved.meal.id, saved.meal.name)
        return CaptureOutcome(status=CaptureStatus.SAVED, meal=saved.meal)

    def cancel(self) -> None:
        """Cancel an in-flight analysis, keeping the draft."""
        if self._submitting:
            self._cancel_requested = True
        self.pipeline.cancel_analysis()

    def add_from_history(self, meal_ids: list[str]) -> list[SaveResult]:
        """Re-add past meals one at a time; each item succeeds on its own."""
        meals = {meal.id: meal for meal in self.store.get_all()}
        results: list[SaveResult] = []
        for meal_id in meal_ids:
            original = meals.get(meal_id)
            if original is None:
                results.append(SaveResult(error=f"Meal {meal_id} not found"))
                continue
            result = self.store.save(MealInput.from_history(original))
            if result.ok:
                self.events.publish(MealEvent.SAVED)
            results.append(result)
        return results

    def delete_meal(self, meal_id: str) -> bool:
        removed = self.store.delete(meal_id)
        if removed:
            self.events.publish(MealEvent.DELETED)
        return removed

    def _rejection_reason(self) -> str | None:
        if not self.draft.has_content:
            return "Describe your meal or attach a photo first."
        if self.in_flight:
            return "An analysis is already in progress."
        if self._recording:
            return "Finish recording before submitting."
        return None

    def _failed(
        self, error: str | None, code: ErrorCode | None, retryable: bool
    ) -> CaptureOutcome:
        if not retryable:
            self.draft.clear()
        return CaptureOutcome(
            status=CaptureStatus.FAILED,
            error=error,
            error_code=code,
            retryable=retryable,
            draft_preserved=retryable,
        )


def meal_name(data: NutritionData, message: str) -> str:
    """Name a captured meal from the analysis, then the submitted text."""
    return (
        data.meal_name.strip()
        or message.strip()[:MEAL_NAME_LENGTH].strip()
        or DEFAULT_MEAL_NAME
    )


async def _resolved(outcome: CaptureOutcome) -> CaptureOutcome:
    return outcome


def _cancelled_result() -> AnalysisResult:
    return AnalysisResult.failure(
        ErrorCode.CANCELLED, "Analysis was cancelled", retryable=False
    )
