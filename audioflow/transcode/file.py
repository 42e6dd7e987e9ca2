"""File-mode transcoder: ffmpeg reads and writes disk paths directly."""

from __future__ import annotations

import subprocess
from typing import Any

from ..errors import ConfigurationError, UnsupportedOperationError
from ..files import probe_input_files, probe_output_files
from ..models import OperationDescriptor
from .builder import ChannelEndpoints, build_arguments
from .process import ProcessController


class FileTranscoder(ProcessController):
    """Run one ffmpeg invocation over `input_paths` / `output_paths`.

    Channel I/O is not available in this mode; only the lifecycle is.
    """

    mode = "file"

    def write_channel(self, index: int, data: bytes) -> None:
        raise UnsupportedOperationError("write_channel is not supported in file mode.")

    def read_channel(self, index: int, size: int | None = None) -> bytes:
        raise UnsupportedOperationError("read_channel is not supported in file mode.")

    def readinto_channel(self, index: int, buffer: bytearray | memoryview) -> int:
        raise UnsupportedOperationError("readinto_channel is not supported in file mode.")

    def _check_mode(self, descriptor: OperationDescriptor) -> None:
        if not descriptor.is_file_mode:
            raise ConfigurationError(
                "file mode requires `input_files` and `output_files`.",
                hint="List one path per logical input and output channel.",
            )

    def _prepare(self, descriptor: OperationDescriptor) -> None:
        probe_input_files(descriptor.input_paths)
        probe_output_files(descriptor.output_paths)

    def _build_args(self, descriptor: OperationDescriptor) -> list[str]:
        endpoints = ChannelEndpoints(
            inputs=tuple(str(path) for path in descriptor.input_paths),
            outputs=tuple(str(path) for path in descriptor.output_paths),
        )
        return build_arguments(descriptor, endpoints, self._settings)

    def _popen_kwargs(self) -> dict[str, Any]:
        return {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.PIPE,
            "close_fds": True,
        }
