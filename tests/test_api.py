"""Tests for the HTTP endpoints."""

import base64

from fastapi.testclient import TestClient

from meal_capture.api.app import create_app
from meal_capture.containers import AppContainer
from meal_capture.domain.meals import MealInput
from tests.conftest import ScriptedAnalysisClient, status_error


def test_health(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_capture_saves_meal_and_lists_it_today(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/capture", json={"text": "oatmeal with blueberries"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "saved"
    assert body["meal"]["name"] == "Oatmeal with berries"
    assert body["meal"]["nutrition_data"]["calories"] == 350
    assert body["meal"]["full_nutrition_data"]["mealType"] == "breakfast"
    today = client.get("/meals/today").json()
    assert [meal["id"] for meal in today] == [body["meal"]["id"]]


def test_capture_with_image(
    container: AppContainer, analysis_client: ScriptedAnalysisClient
) -> None:
    client = TestClient(create_app(container))
    image = base64.b64encode(b"\x89PNG\r\n\x1a\n0000").decode()

    response = client.post(
        "/capture",
        json={
            "image_base64": f"data:image/png;base64,{image}",
            "image_name": "plate.png",
            "image_url": "https://images.test/plate.png",
        },
    )

    assert response.status_code == 200
    assert response.json()["meal"]["image"] == "https://images.test/plate.png"
    attachment = analysis_client.bodies[0]["messages"][0]["experimental_attachments"]
    assert attachment[0]["name"] == "plate.png"


def test_capture_rejects_empty_draft(
    container: AppContainer, analysis_client: ScriptedAnalysisClient
) -> None:
    client = TestClient(create_app(container))

    response = client.post("/capture", json={"text": "   "})

    assert response.status_code == 400
    assert analysis_client.bodies == []


def test_capture_rejects_invalid_image(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/capture", json={"image_base64": "not base64!"})

    assert response.status_code == 400


def test_capture_failure_reports_retry_decision(
    container: AppContainer, analysis_client: ScriptedAnalysisClient
) -> None:
    analysis_client.error = status_error(503)
    client = TestClient(create_app(container))

    response = client.post("/capture", json={"text": "pho"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["error_code"] == "NETWORK_ERROR"
    assert body["retryable"] is True
    assert body["draft_preserved"] is True
    assert container.capture_orchestrator.draft.text == "pho"


def test_capture_status_when_idle(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/capture/status")
    cancel = client.post("/capture/cancel")

    assert response.json() == {
        "stage": "idle",
        "progress": 0,
        "primary_message": "",
        "secondary_message": "",
        "is_loading": False,
        "can_submit": False,
    }
    assert cancel.status_code == 200


def test_meal_lookup_and_delete(container: AppContainer) -> None:
    meal = container.meal_store.save(MealInput(name="Toast")).meal
    client = TestClient(create_app(container))

    assert client.get(f"/meals/{meal.id}").json()["name"] == "Toast"
    assert client.get("/meals/missing").status_code == 404
    assert client.delete("/meals/missing").status_code == 404
    assert client.delete(f"/meals/{meal.id}").status_code == 200
    assert client.get("/meals").json() == []


def test_frequent_meals_flag_favorites(container: AppContainer) -> None:
    for name in ["Oatmeal", "oatmeal", "Oatmeal", "Toast"]:
        container.meal_store.save(MealInput(name=name))
    client = TestClient(create_app(container))

    frequent = client.get("/meals/frequent").json()

    assert [(item["count"], item["favorite"]) for item in frequent] == [
        (3, True),
        (1, False),
    ]


def test_add_from_history(container: AppContainer) -> None:
    meal = container.meal_store.save(
        MealInput(name="Soup", nutrition_data={"calories": 200})
    ).meal
    client = TestClient(create_app(container))

    response = client.post("/meals/from-history", json={"meal_ids": [meal.id, "gone"]})

    body = response.json()
    assert body["added"] == 1
    assert body["results"][0]["meal"]["notes"] == "Added from history: "
    assert body["results"][1]["error"] == "Meal gone not found"
    assert len(client.get("/meals").json()) == 2


def test_today_stats(container: AppContainer) -> None:
    container.meal_store.save(
        MealInput(
            name="Pasta",
            nutrition_data={"calories": 700, "protein": 25, "carbs": 90, "fat": 20},
        )
    )
    client = TestClient(create_app(container))

    body = client.get("/stats/today").json()

    assert body["consumed"]["calories"] == 700
    assert body["calories_remaining"] == 1300
    assert body["groups"][0]["count"] == 1
