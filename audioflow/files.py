"""Filesystem probing for file-mode invocations.

Responsibilities:
- Reject missing, empty or unreadable inputs before ffmpeg is spawned.
- Create missing output directories and reject unwritable output targets.
"""

from __future__ import annotations

import os
from pathlib import Path
import tempfile

from .errors import ResourceError


def probe_input_files(paths: tuple[Path, ...]) -> None:
    """Validate that every input path is a readable, non-empty regular file."""

    for index, path in enumerate(paths):
        reason = _input_problem(path)
        if reason is not None:
            raise ResourceError(
                stage="files",
                detail=f"Input file invalid: `{path}` (input_files[{index}]): {reason}.",
                hint="Verify the input path exists and is readable.",
            )


def probe_output_files(paths: tuple[Path, ...]) -> None:
    """Validate output directories (created when missing) and existing output files."""

    checked_dirs: set[Path] = set()
    for index, path in enumerate(paths):
        directory = path.parent
        if directory not in checked_dirs:
            _ensure_writable_directory(directory, index)
            checked_dirs.add(directory)
        if path.exists():
            if path.is_dir():
                raise ResourceError(
                    stage="files",
                    detail=f"Output path `{path}` (output_files[{index}]) is a directory.",
                )
            if not os.access(path, os.W_OK):
                raise ResourceError(
                    stage="files",
                    detail=(
                        f"Output file `{path}` (output_files[{index}]) already exists "
                        "and is not writable."
                    ),
                )


def _input_problem(path: Path) -> str | None:
    """Return why an input path cannot be used, or `None` when it is fine."""

    try:
        info = path.stat()
    except FileNotFoundError:
        return "file does not exist"
    except OSError as exc:
        return f"cannot stat file: {exc}"
    if path.is_dir():
        return "is a directory, not a file"
    if info.st_size == 0:
        return "file is empty"
    if not os.access(path, os.R_OK):
        return "no read permission"
    return None


def _ensure_writable_directory(directory: Path, index: int) -> None:
    """Create a missing output directory or prove an existing one accepts new files."""

    if not directory.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResourceError(
                stage="files",
                detail=f"Cannot create output directory `{directory}`: {exc}",
            ) from exc
        return

    if not directory.is_dir():
        raise ResourceError(
            stage="files",
            detail=f"Output parent `{directory}` (output_files[{index}]) is not a directory.",
        )
    try:
        with tempfile.NamedTemporaryFile(dir=directory, prefix=".write_test_"):
            pass
    except OSError as exc:
        raise ResourceError(
            stage="files",
            detail=f"Output directory `{directory}` is not writable: {exc}",
            hint="Choose an output directory the current user can write to.",
        ) from exc
