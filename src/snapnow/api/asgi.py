"""ASGI entrypoint for the SnapNow API."""

from snapnow.api.app import create_app
from snapnow.containers import build_container

app = create_app(build_container())
