"""Stream-mode transcoder: logical channels over live pipes.

Callers run one writer per input channel and one reader per output channel
concurrently; pipe buffers are bounded and ffmpeg interleaves its reads and writes
across channels in any order. Every `write_channel` and `read_channel` call may block.
"""

from __future__ import annotations

import subprocess
from typing import Any, BinaryIO

from ..errors import ChannelClosedError, ChannelIndexError, ConfigurationError, EngineStateError
from ..models import OperationDescriptor, topology_for
from .builder import build_arguments
from .process import ProcessController
from .wiring import ChannelWiring


class StreamTranscoder(ProcessController):
    """Run ffmpeg with standard and extra pipes exposed as indexed channels."""

    mode = "stream"

    _wiring: ChannelWiring | None = None

    @property
    def wiring(self) -> ChannelWiring | None:
        return self._wiring

    def write_channel(self, index: int, data: bytes) -> None:
        """Write all of `data` to input channel `index`.

        Raises:
            ChannelIndexError: When the operation has no such input channel.
            ChannelClosedError: After `close_inputs()`, termination or ffmpeg exit.
        """

        stream = self._input_stream(index)
        view = memoryview(data)
        try:
            while view:
                written = stream.write(view)
                if written is None:
                    continue
                view = view[written:]
        except (BrokenPipeError, ValueError) as exc:
            raise ChannelClosedError(f"input channel {index} is closed.") from exc

    def read_channel(self, index: int, size: int | None = None) -> bytes:
        """Read up to `size` bytes from output channel `index`; `b""` means end of stream.

        Raises:
            ChannelIndexError: When the operation has no such output channel.
            ChannelClosedError: When the channel was force-closed.
        """

        stream = self._output_stream(index)
        try:
            chunk = stream.read(self._settings.read_chunk_size if size is None else size)
        except ValueError as exc:
            raise ChannelClosedError(f"output channel {index} is closed.") from exc
        return chunk or b""

    def readinto_channel(self, index: int, buffer: bytearray | memoryview) -> int:
        """Read into `buffer` from output channel `index`; `0` means end of stream."""

        stream = self._output_stream(index)
        try:
            count = stream.readinto(buffer)
        except ValueError as exc:
            raise ChannelClosedError(f"output channel {index} is closed.") from exc
        return count or 0

    def _input_stream(self, index: int) -> BinaryIO:
        wiring = self._require_wiring()
        if not 0 <= index < len(wiring.topology.inputs):
            raise ChannelIndexError(
                f"input channel index {index} out of range for "
                f"`{self.descriptor.operation.value}` ({len(wiring.topology.inputs)} input(s))."
            )
        stream = wiring.input_stream(index)
        if stream is None or wiring.is_input_closed(index) or stream.closed:
            raise ChannelClosedError(f"input channel {index} is closed.")
        return stream

    def _output_stream(self, index: int) -> BinaryIO:
        wiring = self._require_wiring()
        if not 0 <= index < len(wiring.topology.outputs):
            raise ChannelIndexError(
                f"output channel index {index} out of range for "
                f"`{self.descriptor.operation.value}` ({len(wiring.topology.outputs)} output(s))."
            )
        stream = wiring.output_stream(index)
        if stream is None or wiring.is_output_closed(index) or stream.closed:
            raise ChannelClosedError(f"output channel {index} is closed.")
        return stream

    def _require_wiring(self) -> ChannelWiring:
        if self._wiring is None or self._process is None:
            raise EngineStateError("stream transcoder was not started.")
        return self._wiring

    def _check_mode(self, descriptor: OperationDescriptor) -> None:
        if descriptor.is_file_mode:
            raise ConfigurationError(
                "stream mode does not accept `input_files` / `output_files`.",
                hint="Use file mode for disk endpoints.",
            )

    def _prepare(self, descriptor: OperationDescriptor) -> None:
        wiring = ChannelWiring(topology_for(descriptor.operation))
        self._wiring = wiring
        wiring.allocate()

    def _build_args(self, descriptor: OperationDescriptor) -> list[str]:
        assert self._wiring is not None
        return build_arguments(descriptor, self._wiring.endpoints(), self._settings)

    def _popen_kwargs(self) -> dict[str, Any]:
        assert self._wiring is not None
        return {
            "stdin": subprocess.PIPE,
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "bufsize": 0,
            "close_fds": True,
            "pass_fds": self._wiring.child_fds,
        }

    def _after_spawn(self, process: subprocess.Popen[bytes]) -> None:
        assert self._wiring is not None
        self._wiring.close_child_ends()
        self._wiring.attach_standard_streams(process.stdin, process.stdout)

    def _release_inputs(self) -> None:
        if self._wiring is not None:
            self._wiring.close_inputs()

    def _release_resources(self) -> None:
        if self._wiring is not None:
            self._wiring.close_all()
