"""ffmpeg executable discovery.

Responsibilities:
- Resolve the transcoder binary with bundled-first precedence, then `PATH`.
- Turn a missing binary into an environment error before any pipe is allocated.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import sys

from .errors import ToolNotFoundError


FFMPEG_COMMAND = "ffmpeg"


def resolve_executable(command_name: str = FFMPEG_COMMAND) -> str | None:
    """Resolve an executable path, or `None` when nothing runnable is found.

    Resolution order:
    1. Bundled app directories (`./bin/<tool>` then `./<tool>` from app root).
    2. System `PATH`.
    """

    normalized = command_name.strip()
    if not normalized:
        return None

    for candidate in _bundled_candidates(normalized):
        if candidate.is_file():
            return str(candidate)

    return shutil.which(normalized)


def require_executable(explicit: str | None = None) -> str:
    """Return a runnable ffmpeg path, honouring an explicit override first.

    Raises:
        ToolNotFoundError: When the override is not executable or ffmpeg is not found.
    """

    if explicit is not None:
        candidate = Path(explicit)
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
        located = shutil.which(explicit)
        if located is not None:
            return located
        raise ToolNotFoundError(
            f"Configured ffmpeg executable `{explicit}` is not runnable.",
            hint="Point `AUDIOFLOW_FFMPEG` at an existing executable file.",
        )

    resolved = resolve_executable(FFMPEG_COMMAND)
    if resolved is None:
        raise ToolNotFoundError(
            "ffmpeg not found in the application bundle or on PATH.",
            hint="Install ffmpeg or set `AUDIOFLOW_FFMPEG` to its full path.",
        )
    return resolved


def _bundled_candidates(command_name: str) -> list[Path]:
    """Return deterministic bundled candidate paths for one executable name."""

    app_root = _app_root()
    candidates: list[Path] = []
    for name in _candidate_names(command_name):
        candidates.append(app_root / "bin" / name)
        candidates.append(app_root / name)
    return candidates


def _candidate_names(command_name: str) -> tuple[str, ...]:
    """Return command name variants including Windows `.exe` fallback."""

    if command_name.lower().endswith(".exe"):
        return (command_name,)
    return (command_name, f"{command_name}.exe")


def _app_root() -> Path:
    """Resolve runtime application root for frozen and non-frozen execution."""

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]
