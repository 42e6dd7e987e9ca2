"""Domain exceptions for transcoding engine and CLI diagnostics.

Every error carries the lifecycle stage it was raised from so callers can tell a
malformed configuration from an ffmpeg rejection or a caller cancellation without
inspecting engine internals.
"""

from __future__ import annotations


class TranscodeError(RuntimeError):
    """Raised when a specific engine stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped transcoding error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class ConfigurationError(TranscodeError):
    """Raised for invalid or inconsistent operation descriptors."""

    def __init__(self, detail: str, *, stage: str = "config", hint: str | None = None) -> None:
        super().__init__(stage=stage, detail=detail, hint=hint)


class ToolNotFoundError(TranscodeError):
    """Raised when the ffmpeg executable cannot be located."""

    def __init__(self, detail: str, *, hint: str | None = None) -> None:
        super().__init__(stage="init", detail=detail, hint=hint)


class ResourceError(TranscodeError):
    """Raised for pipe allocation and filesystem probing failures."""


class StartError(TranscodeError):
    """Raised when the ffmpeg process cannot be spawned."""

    def __init__(self, detail: str, *, hint: str | None = None) -> None:
        super().__init__(stage="start", detail=detail, hint=hint)


class ProcessExitError(TranscodeError):
    """Raised when ffmpeg exits with a nonzero status.

    Attributes:
        returncode: Process exit status as reported by `subprocess`.
        stderr_tail: Trailing diagnostic output captured before exit.
    """

    def __init__(self, returncode: int, stderr_tail: str) -> None:
        detail = f"ffmpeg exited with status {returncode}"
        if stderr_tail:
            detail = f"{detail}, stderr: {stderr_tail}"
        super().__init__(
            stage="wait",
            detail=detail,
            hint="Check the input format tags and sample parameters against the data sent.",
        )
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class CancelledError(TranscodeError):
    """Raised by `wait()` when the operation was cancelled or hit its deadline."""

    def __init__(self, reason: str) -> None:
        super().__init__(stage="wait", detail=f"transcoding cancelled: {reason}")
        self.reason = reason


class ChannelError(TranscodeError):
    """Base error for logical channel reads and writes."""

    def __init__(self, detail: str) -> None:
        super().__init__(stage="channel", detail=detail)


class ChannelIndexError(ChannelError, IndexError):
    """Raised when a logical channel index does not exist for the operation."""


class ChannelClosedError(ChannelError):
    """Raised when a channel is read or written after it was closed."""


class UnsupportedOperationError(ChannelError):
    """Raised for channel I/O against a file-mode invocation."""


class EngineStateError(TranscodeError):
    """Raised when the engine facade is driven out of order."""

    def __init__(self, detail: str) -> None:
        super().__init__(stage="engine", detail=detail)
