"""ASGI entrypoint for the meal scan API."""

from meal_scan.api.app import create_app
from meal_scan.containers import build_container

app = create_app(build_container())
