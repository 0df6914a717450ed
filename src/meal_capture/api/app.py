"""FastAPI application factory."""

import base64
import binascii
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from meal_capture.api.models import (
    CaptureRequest,
    CaptureResponse,
    CaptureStatusResponse,
    FrequentMealModel,
    FromHistoryRequest,
    FromHistoryResponse,
    HistoryItemModel,
    MealModel,
    TodayProgressResponse,
)
from meal_capture.app_logging import configure_logging
from meal_capture.containers import AppContainer
from meal_capture.domain.analysis import ImageAttachment
from meal_capture.services.capture import CaptureOrchestrator, CaptureStatus
from meal_capture.services.meals import FAVORITE_THRESHOLD


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/capture")
    async def capture(payload: CaptureRequest, request: Request) -> CaptureResponse:
        """Replace the draft with the submitted content and analyze it."""
        state_container: AppContainer = request.app.state.container
        orchestrator = state_container.capture_orchestrator
        if orchestrator.in_flight:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="An analysis is already in progress.",
            )
        _apply_draft(orchestrator, payload)
        outcome = await orchestrator.submit()
        if outcome.status == CaptureStatus.REJECTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=outcome.error
            )
        if outcome.status == CaptureStatus.FAILED:
            logger.info(
                "Capture failed (%s), draft preserved: %s",
                outcome.error_code,
                outcome.draft_preserved,
            )
        return CaptureResponse.from_outcome(outcome)

    @app.post("/capture/cancel")
    async def cancel_capture(request: Request) -> dict[str, str]:
        """Cancel the in-flight analysis, if any."""
        state_container: AppContainer = request.app.state.container
        state_container.capture_orchestrator.cancel()
        return {"status": "ok"}

    @app.get("/capture/status")
    async def capture_status(request: Request) -> CaptureStatusResponse:
        """Return the current analysis stage and whether a submit is allowed."""
        state_container: AppContainer = request.app.state.container
        pipeline = state_container.analysis_pipeline
        message = pipeline.message
        return CaptureStatusResponse(
            stage=pipeline.stage.value,
            progress=pipeline.progress,
            primary_message=message.primary,
            secondary_message=message.secondary,
            is_loading=pipeline.is_loading,
            can_submit=state_container.capture_orchestrator.can_submit,
        )

    @app.get("/meals")
    async def list_meals(request: Request, limit: int = 100) -> list[MealModel]:
        """Return recorded meals, newest first."""
        state_container: AppContainer = request.app.state.container
        meals = state_container.meal_store.get_recent(limit)
        return [MealModel.from_meal(meal) for meal in meals]

    @app.get("/meals/today")
    async def list_today_meals(request: Request) -> list[MealModel]:
        """Return today's meals, oldest first."""
        state_container: AppContainer = request.app.state.container
        meals = state_container.meal_store.get_today()
        return [MealModel.from_meal(meal) for meal in meals]

    @app.get("/meals/frequent")
    async def list_frequent_meals(request: Request) -> list[FrequentMealModel]:
        """Return one meal per name, most frequently recorded first."""
        state_container: AppContainer = request.app.state.container
        ranking = state_container.meal_store.get_frequency_ranking()
        return [
            FrequentMealModel(
                **MealModel.from_meal(meal).model_dump(),
                count=count,
                favorite=count >= FAVORITE_THRESHOLD,
            )
            for meal, count in ranking
        ]

    @app.post("/meals/from-history")
    async def add_from_history(
        payload: FromHistoryRequest, request: Request
    ) -> FromHistoryResponse:
        """Re-add past meals with fresh ids and timestamps."""
        state_container: AppContainer = request.app.state.container
        results = state_container.capture_orchestrator.add_from_history(
            payload.meal_ids
        )
        items = [
            HistoryItemModel.from_result(meal_id, result)
            for meal_id, result in zip(payload.meal_ids, results, strict=True)
        ]
        return FromHistoryResponse(
            added=sum(1 for result in results if result.ok), results=items
        )

    @app.get("/meals/{meal_id}")
    async def get_meal(meal_id: str, request: Request) -> MealModel:
        """Return a single recorded meal."""
        state_container: AppContainer = request.app.state.container
        meal = state_container.meal_store.get_by_id(meal_id)
        if meal is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return MealModel.from_meal(meal)

    @app.delete("/meals/{meal_id}")
    async def delete_meal(meal_id: str, request: Request) -> dict[str, str]:
        """Delete a recorded meal."""
        state_container: AppContainer = request.app.state.container
        if not state_container.capture_orchestrator.delete_meal(meal_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "deleted"}

    @app.get("/stats/today")
    async def today_stats(request: Request) -> TodayProgressResponse:
        """Return today's consumed totals against the daily goals."""
        state_container: AppContainer = request.app.state.container
        progress = state_container.stats_service.get_today_progress()
        return TodayProgressResponse.from_progress(progress)

    return app


def _apply_draft(orchestrator: CaptureOrchestrator, payload: CaptureRequest) -> None:
    image_data = _decode_image(payload.image_base64) if payload.image_base64 else None
    orchestrator.set_text(payload.text)
    orchestrator.draft.transcript = (payload.transcript or "").strip()
    if image_data:
        orchestrator.attach_image(
            ImageAttachment(
                data=image_data,
                name=payload.image_name or "meal-image",
                content_type=payload.image_content_type,
            ),
            image_url=payload.image_url,
        )
    else:
        orchestrator.remove_image()


def _decode_image(raw: str) -> bytes:
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="image_base64 is not valid base64",
        ) from exc
