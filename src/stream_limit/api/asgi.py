"""ASGI entrypoint for the stream limit API."""

from stream_limit.api.app import create_app
from stream_limit.containers import build_container

app = create_app(build_container())
