"""ASGI entrypoint for the meal capture API."""

from meal_capture.api.app import create_app
from meal_capture.containers import build_container

app = create_app(build_container())
