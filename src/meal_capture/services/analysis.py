"""Staged, cancellable meal analysis against the remote endpoint."""

import asyncio
import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from meal_capture.domain.analysis import (
    STAGE_DURATIONS,
    STAGE_MESSAGES,
    STAGE_PROGRESS,
    AnalysisRequest,
    AnalysisResult,
    AnalysisStage,
    ErrorCode,
    ImageAttachment,
    StageMessage,
    stage_plan,
)
from meal_capture.services.nutrition import extract_nutrition

IMAGE_INSTRUCTION = (
    "Use this image to analyze and extract all of the context of the meal in "
    "order to generate the most precise web search query. Make sure to consider "
    "every aspect of the meal in the image like size, quantity, brands or company "
    "logos and ingredients"
)

_VALIDATION_STATUSES = {400, 403, 413, 415, 422, 451}
_TIMEOUT_STATUSES = {408, 504}
_TOO_MANY_REQUESTS = 429
_SERVER_ERROR = 500

_ERROR_MESSAGES = {
    ErrorCode.NETWORK_ERROR: (
        "We couldn't reach the nutrition service. Check your connection and "
        "try again."
    ),
    ErrorCode.TIMEOUT: "The analysis took too long to respond. Please try again.",
    ErrorCode.NO_DATA: (
        "We couldn't work out nutrition details for this meal. Try adding more "
        "detail and submit again."
    ),
    ErrorCode.VALIDATION_ERROR: (
        "This meal couldn't be analyzed. Try describing it differently."
    ),
    ErrorCode.UNKNOWN: "Something went wrong while analyzing your meal.",
    ErrorCode.CANCELLED: "Analysis was cancelled",
}

StageListener = Callable[[AnalysisStage], None]

_logger = logging.getLogger(__name__)


class AnalysisClient(Protocol):
    """Interface for the remote analysis endpoint."""

    async def analyze(self, body: dict[str, object]) -> object:
        """Send an analysis request and return the decoded response body."""


@dataclass
class _Run:
    run_id: int
    stages: list[AnalysisStage]
    position: int = 0
    cancelled: bool = False
    call: "asyncio.Task[object] | None" = None
    timeline: "asyncio.Task[None] | None" = None


@dataclass
class AnalysisPipeline:
    """Drives one analysis at a time through ordered progress stages.

    The stages are a client-side timeline that advances on fixed durations
    while the single HTTP call is in flight. When the call succeeds early the
    remaining stages are still emitted, in order, before the result is
    returned. A newer ``analyze`` call takes over the observable stage; the
    older call still returns its own result to its caller.
    """

    client: AnalysisClient
    stage_scale: float = 1.0
    _stage: AnalysisStage = field(default=AnalysisStage.IDLE, init=False)
    _active: _Run | None = field(default=None, init=False)
    _run_count: int = field(default=0, init=False)
    _listeners: list[StageListener] = field(default_factory=list, init=False)

    @property
    def stage(self) -> AnalysisStage:
        return self._stage

    @property
    def progress(self) -> int:
        return STAGE_PROGRESS[self._stage]

    @property
    def message(self) -> StageMessage:
        return STAGE_MESSAGES[self._stage]

    @property
    def is_loading(self) -> bool:
        return self._stage != AnalysisStage.IDLE

    def add_listener(self, listener: StageListener) -> Callable[[], None]:
        """Register a stage listener and return a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Analyze a meal description and/or image.

        Expected failures come back as a failed ``AnalysisResult``; only
        defects raise.
        """
        if not request.has_content:
            return AnalysisResult.failure(
                ErrorCode.VALIDATION_ERROR,
                "Message or image is required",
                retryable=False,
            )
        run = self._start_run(request)
        try:
            return await self._execute(run, request)
        finally:
            self._stop(run)

    def cancel_analysis(self) -> None:
        """Abort the in-flight analysis and return to idle immediately."""
        run = self._active
        if run is None:
            return
        run.cancelled = True
        self._active = None
        for task in (run.call, run.timeline):
            if task is not None:
                task.cancel()
        self._set_stage(AnalysisStage.IDLE)
        _logger.info("Meal analysis %s cancelled", run.run_id)

    async def _execute(self, run: _Run, request: AnalysisRequest) -> AnalysisResult:
        body = build_request_body(request)
        run.timeline = asyncio.create_task(self._play_timeline(run))
        run.call = asyncio.create_task(self.client.analyze(body))
        try:
            payload = await run.call
        except asyncio.CancelledError:
            if run.cancelled:
                return _failure(ErrorCode.CANCELLED, retryable=False)
            raise
        except httpx.HTTPError as exc:
            result = classify_failure(exc)
            _logger.warning(
                "Meal analysis %s failed (%s): %s", run.run_id, result.error_code, exc
            )
            return result

        if run.cancelled:
            _logger.info("Discarding analysis %s result after cancel", run.run_id)
            return _failure(ErrorCode.CANCELLED, retryable=False)

        data = extract_nutrition(payload)
        if data is None:
            _logger.warning("Meal analysis %s returned no nutrition data", run.run_id)
            return _failure(ErrorCode.NO_DATA, retryable=True)

        self._finish_timeline(run)
        return AnalysisResult.success(data)

    def _start_run(self, request: AnalysisRequest) -> _Run:
        self._run_count += 1
        run = _Run(
            run_id=self._run_count,
            stages=stage_plan(has_image=request.image is not None),
        )
        if self._active is not None:
            _logger.info(
                "Analysis %s superseded by %s", self._active.run_id, run.run_id
            )
        self._active = run
        self._advance(run)
        return run

    async def _play_timeline(self, run: _Run) -> None:
        while run.position < len(run.stages):
            current = run.stages[run.position - 1]
            await asyncio.sleep(STAGE_DURATIONS[current] * self.stage_scale)
            self._advance(run)

    def _finish_timeline(self, run: _Run) -> None:
        if run.timeline is not None:
            run.timeline.cancel()
        while run.position < len(run.stages):
            self._advance(run)

    def _advance(self, run: _Run) -> None:
        stage = run.stages[run.position]
        run.position += 1
        if self._active is run:
            self._set_stage(stage)

    def _stop(self, run: _Run) -> None:
        if run.timeline is not None:
            run.timeline.cancel()
        if self._active is run:
            self._active = None
            self._set_stage(AnalysisStage.IDLE)

    def _set_stage(self, stage: AnalysisStage) -> None:
        if stage == self._stage:
            return
        self._stage = stage
        for listener in list(self._listeners):
            try:
                listener(stage)
            except Exception:
                _logger.exception("Analysis stage listener failed")


def build_request_body(request: AnalysisRequest) -> dict[str, object]:
    """Build the JSON body expected by the analysis endpoint."""
    content = request.message.strip()
    message: dict[str, object] = {"role": "user", "content": content}
    if request.image is not None:
        image = request.image
        message["content"] = f"{content}\n{IMAGE_INSTRUCTION}: {image.name}".strip()
        message["experimental_attachments"] = [
            {
                "name": image.name,
                "contentType": image.content_type or _detect_mime_type(image.data),
                "url": _to_data_url(image),
            }
        ]
    return {"structured": True, "messages": [message]}


def classify_failure(exc: httpx.HTTPError) -> AnalysisResult:
    """Map an HTTP failure onto the error taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        return _failure(ErrorCode.TIMEOUT, retryable=True)
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in _TIMEOUT_STATUSES:
            return _failure(ErrorCode.TIMEOUT, retryable=True)
        if status in _VALIDATION_STATUSES:
            return _failure(ErrorCode.VALIDATION_ERROR, retryable=False)
        if status >= _SERVER_ERROR or status == _TOO_MANY_REQUESTS:
            return _failure(ErrorCode.NETWORK_ERROR, retryable=True)
        return _failure(ErrorCode.UNKNOWN, retryable=False)
    if isinstance(exc, httpx.TransportError):
        return _failure(ErrorCode.NETWORK_ERROR, retryable=True)
    return _failure(ErrorCode.UNKNOWN, retryable=False)


def _failure(code: ErrorCode, *, retryable: bool) -> AnalysisResult:
    return AnalysisResult.failure(code, _ERROR_MESSAGES[code], retryable=retryable)


def _to_data_url(image: ImageAttachment) -> str:
    """Convert image bytes to a base64 data URL."""
    mime_type = image.content_type or _detect_mime_type(image.data)
    encoded = base64.b64encode(image.data).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
