"""Pipe allocation and ownership for stream-mode invocations.

Responsibilities:
- Allocate one OS pipe per extra slot in the operation's channel topology.
- Classify each pipe end as handed to ffmpeg or retained by the caller.
- Name the endpoint ffmpeg must reference for every logical channel.

Standard input and output are created by `subprocess.Popen`; the parent-owned ends
of those two pipes are attached with `attach_standard_streams()` after spawn.
"""

from __future__ import annotations

from dataclasses import dataclass
import fcntl
import os
from typing import BinaryIO

from ..errors import ResourceError
from ..models import ChannelTopology, Slot
from .builder import ChannelEndpoints


_STDIN_ENDPOINT = "pipe:0"
_STDOUT_ENDPOINT = "pipe:1"
# Extra child ends are numbered above stdin, stdout and stderr.
_FIRST_EXTRA_FD = 3


@dataclass(slots=True)
class ExtraPipe:
    """One extra pipe and the ownership of its two ends.

    Attributes:
        direction: `input` when ffmpeg reads from it, `output` when ffmpeg writes.
        logical_index: Logical channel index within that direction.
        child_fd: Descriptor passed to ffmpeg; closed in the parent after spawn.
        parent_fd: Descriptor retained for caller reads or writes.
    """

    direction: str
    logical_index: int
    child_fd: int
    parent_fd: int


class ChannelWiring:
    """Own every pipe end of one stream-mode invocation."""

    def __init__(self, topology: ChannelTopology) -> None:
        self._topology = topology
        self._extra_pipes: list[ExtraPipe] = []
        self._inputs: list[BinaryIO | None] = [None] * len(topology.inputs)
        self._outputs: list[BinaryIO | None] = [None] * len(topology.outputs)
        self._closed_inputs: set[int] = set()
        self._closed_outputs: set[int] = set()
        self._child_ends_closed = False
        self._allocated = False

    @property
    def topology(self) -> ChannelTopology:
        return self._topology

    @property
    def extra_pipes(self) -> tuple[ExtraPipe, ...]:
        return tuple(self._extra_pipes)

    @property
    def child_fds(self) -> tuple[int, ...]:
        """Descriptors to pass to ffmpeg, in attachment order."""

        return tuple(pipe.child_fd for pipe in self._extra_pipes)

    def allocate(self) -> None:
        """Create one pipe per extra slot; on failure nothing stays open.

        Raises:
            ResourceError: When the OS refuses to create a pipe.
        """

        if self._allocated:
            return
        try:
            for direction, logical_index, _ in self._topology.extra_routes:
                read_fd, write_fd = os.pipe()
                if direction == "input":
                    child_fd, parent_fd = read_fd, write_fd
                else:
                    child_fd, parent_fd = write_fd, read_fd
                try:
                    child_fd = _above_standard_streams(child_fd)
                except OSError:
                    _close_fd(child_fd)
                    _close_fd(parent_fd)
                    raise
                pipe = ExtraPipe(direction, logical_index, child_fd=child_fd, parent_fd=parent_fd)
                self._extra_pipes.append(pipe)
                if direction == "input":
                    self._inputs[logical_index] = open(parent_fd, "wb", buffering=0)
                else:
                    self._outputs[logical_index] = open(parent_fd, "rb", buffering=0)
        except OSError as exc:
            self.close_all()
            raise ResourceError(
                stage="wiring",
                detail=f"Could not allocate channel pipe: {exc}",
                hint="Check the process file-descriptor limit (`ulimit -n`).",
            ) from exc
        self._allocated = True

    def endpoints(self) -> ChannelEndpoints:
        """Return the endpoint name ffmpeg uses for every logical channel."""

        extra_by_key = {
            (pipe.direction, pipe.logical_index): pipe.child_fd for pipe in self._extra_pipes
        }
        inputs = tuple(
            self._endpoint_name(route.slot, extra_by_key.get(("input", index)))
            for index, route in enumerate(self._topology.inputs)
        )
        outputs = tuple(
            self._endpoint_name(route.slot, extra_by_key.get(("output", index)))
            for index, route in enumerate(self._topology.outputs)
        )
        return ChannelEndpoints(inputs=inputs, outputs=outputs)

    def attach_standard_streams(self, stdin: BinaryIO | None, stdout: BinaryIO | None) -> None:
        """Attach the parent ends of ffmpeg's standard input and output."""

        for index, route in enumerate(self._topology.inputs):
            if route.slot is Slot.STDIN:
                self._inputs[index] = stdin
        for index, route in enumerate(self._topology.outputs):
            if route.slot is Slot.STDOUT:
                self._outputs[index] = stdout

    def input_stream(self, index: int) -> BinaryIO | None:
        """Return the parent-owned write end of an input channel."""

        return self._inputs[index]

    def output_stream(self, index: int) -> BinaryIO | None:
        """Return the parent-owned read end of an output channel."""

        return self._outputs[index]

    def is_input_closed(self, index: int) -> bool:
        return index in self._closed_inputs

    def is_output_closed(self, index: int) -> bool:
        return index in self._closed_outputs

    def close_child_ends(self) -> None:
        """Close the parent's copies of ends now owned by ffmpeg."""

        if self._child_ends_closed:
            return
        self._child_ends_closed = True
        for pipe in self._extra_pipes:
            _close_fd(pipe.child_fd)

    def close_inputs(self) -> None:
        """Close every parent-owned input end so ffmpeg sees end-of-stream."""

        for index, stream in enumerate(self._inputs):
            if index in self._closed_inputs:
                continue
            self._closed_inputs.add(index)
            if stream is not None:
                _close_stream(stream)

    def close_outputs(self) -> None:
        """Close every parent-owned output end."""

        for index, stream in enumerate(self._outputs):
            if index in self._closed_outputs:
                continue
            self._closed_outputs.add(index)
            if stream is not None:
                _close_stream(stream)

    def close_all(self) -> None:
        """Close every end this wiring still holds; safe to call repeatedly."""

        self.close_inputs()
        self.close_outputs()
        self.close_child_ends()

    def open_descriptors(self) -> tuple[int, ...]:
        """Return descriptors this wiring still holds open in the parent."""

        descriptors: list[int] = []
        for stream in (*self._inputs, *self._outputs):
            if stream is not None and not stream.closed:
                descriptors.append(stream.fileno())
        if not self._child_ends_closed:
            descriptors.extend(pipe.child_fd for pipe in self._extra_pipes)
        return tuple(descriptors)

    @staticmethod
    def _endpoint_name(slot: Slot, extra_fd: int | None) -> str:
        if slot is Slot.STDIN:
            return _STDIN_ENDPOINT
        if slot is Slot.STDOUT:
            return _STDOUT_ENDPOINT
        if extra_fd is None:
            raise ResourceError(
                stage="wiring",
                detail="Extra channel slot requested before pipes were allocated.",
            )
        return f"pipe:{extra_fd}"


def _above_standard_streams(descriptor: int) -> int:
    """Return `descriptor` renumbered to 3 or above; the original number is closed.

    With stdin or stdout closed in the host, `os.pipe()` may return 0 or 1, which the
    child would see replaced by its own standard streams.
    """

    if descriptor >= _FIRST_EXTRA_FD:
        return descriptor
    moved = fcntl.fcntl(descriptor, fcntl.F_DUPFD_CLOEXEC, _FIRST_EXTRA_FD)
    os.close(descriptor)
    return moved


def _close_stream(stream: BinaryIO) -> None:
    """Close an unbuffered pipe end; there is nothing to flush."""

    stream.close()


def _close_fd(descriptor: int) -> None:
    try:
        os.close(descriptor)
    except OSError:
        pass
