"""Logging configuration helpers."""

import logging
from collections.abc import MutableMapping
from typing import Any


def configure_logging() -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("stream_limit")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


class RunLogAdapter(logging.LoggerAdapter):
    """Tag every line of an enforcement run with its run number."""

    def __init__(self, logger: logging.Logger, run_number: int) -> None:
        super().__init__(logger, {"run_number": run_number})
        self.run_number = run_number

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("run_number", self.run_number)
        kwargs["extra"] = extra
        return f"[{self.run_number}] {msg}", kwargs
