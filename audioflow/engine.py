"""High-level engine facade over stream and file transcoders.

Key types:
- `EngineMode`: stream (live pipes) or file (disk endpoints).
- `AudioEngine`: start/wait/done plus named channel helpers.
"""

from __future__ import annotations

from enum import Enum

from .config import EngineSettings
from .errors import EngineStateError
from .models import OperationDescriptor
from .telemetry.logger import EngineLogger
from .transcode.cancellation import CancellationToken
from .transcode.file import FileTranscoder
from .transcode.process import Transcoder
from .transcode.stream import StreamTranscoder


class EngineMode(str, Enum):
    """Endpoint family an engine runs against."""

    STREAM = "stream"
    FILE = "file"


class AudioEngine:
    """Run one declarative audio operation.

    Channel helpers map to logical indices: `write_primary` / `write_secondary` are
    input channels 0 and 1 (merge), `read_left` / `read_right` are output channels
    0 and 1 (split).
    """

    def __init__(
        self,
        mode: EngineMode | str,
        descriptor: OperationDescriptor,
        *,
        settings: EngineSettings | None = None,
        event_logger: EngineLogger | None = None,
    ) -> None:
        self._mode = EngineMode(mode)
        transcoder_cls: type[StreamTranscoder] | type[FileTranscoder]
        if self._mode is EngineMode.STREAM:
            transcoder_cls = StreamTranscoder
        else:
            transcoder_cls = FileTranscoder
        self._transcoder: Transcoder = transcoder_cls(
            descriptor,
            settings=settings,
            event_logger=event_logger,
        )
        self._running = False

    @property
    def mode(self) -> EngineMode:
        return self._mode

    @property
    def running(self) -> bool:
        return self._running

    @property
    def transcoder(self) -> Transcoder:
        return self._transcoder

    def start(
        self,
        token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize and spawn ffmpeg; failures leave nothing open."""

        self._transcoder.start(token, timeout)
        self._running = True

    def wait(self) -> None:
        """Block until ffmpeg exits and surface how the run ended."""

        if not self._running:
            raise EngineStateError("engine not running.")
        self._transcoder.wait()

    def write_primary(self, data: bytes) -> None:
        self._transcoder.write_channel(0, data)

    def write_secondary(self, data: bytes) -> None:
        self._transcoder.write_channel(1, data)

    def read_left(self, size: int | None = None) -> bytes:
        return self._transcoder.read_channel(0, size)

    def read_right(self, size: int | None = None) -> bytes:
        return self._transcoder.read_channel(1, size)

    def close_input(self) -> None:
        """Signal end-of-input; must follow the last write."""

        if not self._running:
            return
        self._transcoder.close_inputs()

    def done(self) -> None:
        """Release the process and every pipe; safe to call repeatedly."""

        if not self._running:
            return
        self._transcoder.terminate()
        self._running = False

    def __enter__(self) -> AudioEngine:
        return self

    def __exit__(self, *_: object) -> None:
        self._transcoder.terminate()
        self._running = False
