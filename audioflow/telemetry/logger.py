"""Structured engine logging utilities.

Responsibilities:
- Emit concise, deterministic lifecycle logs for transcoder activity via `loguru`.
- Let applications and the CLI opt in to the package's log output.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger


_PACKAGE_NAME = "audioflow"


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


def configure_logging(sink: TextIO | None = None, level: str = "INFO") -> int:
    """Route package logs to `sink` with plain message formatting.

    Returns:
        The loguru handler id, usable with `logger.remove(handler_id)`.
    """

    logger.remove()
    handler_id = logger.add(
        sink or sys.stderr,
        format="{message}",
        level=level,
        colorize=False,
    )
    logger.enable(_PACKAGE_NAME)
    return handler_id


class EngineLogger:
    """Emit deterministic lifecycle lines for one transcoder."""

    def __init__(self, **base_context: object) -> None:
        self._base_context = dict(base_context)

    def bind(self, **context: object) -> EngineLogger:
        """Return a logger that adds `context` to every line."""

        return EngineLogger(**{**self._base_context, **context})

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured lifecycle line."""

        merged = {**self._base_context, **context}
        line = f"[engine] level={level} stage={stage} event={event}{_format_context(merged)}"
        logger.log(level, line)

    def log_stage_start(self, stage: str, **context: object) -> None:
        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str, **context: object) -> None:
        """Emit a stage-failure event without ffmpeg's diagnostic payload."""

        self._emit("ERROR", "failure", stage, error_type=error_type, **context)

    def log_debug(self, stage: str, event: str, **context: object) -> None:
        self._emit("DEBUG", event, stage, **context)
