"""Process lifecycle shared by stream and file transcoders.

Responsibilities:
- Default and validate the descriptor, resolve ffmpeg and build arguments.
- Spawn ffmpeg, pump its stderr into a bounded tail and observe its exit.
- Tie one cancellation token to process kill and pipe teardown.
- Guarantee that every resource is released on every exit path.

Key types:
- `LifecycleState`: `created -> initialized -> running -> draining -> terminated`.
- `Transcoder`: the capability surface shared by stream and file transcoders.
- `ProcessController`: base class owning the process handle.
"""

from __future__ import annotations

from enum import Enum
import subprocess
import threading
from typing import Any, BinaryIO, Protocol

from ..config import EngineSettings
from ..errors import (
    CancelledError,
    EngineStateError,
    ProcessExitError,
    StartError,
    TranscodeError,
)
from ..models import OperationDescriptor
from ..runtime_tools import require_executable
from ..telemetry.logger import EngineLogger
from .cancellation import CancellationToken
from .tail import TailBuffer


TERMINATE_REASON = "terminated by caller"
_STDERR_READ_SIZE = 1024


class LifecycleState(str, Enum):
    """Lifecycle states of one transcoder."""

    CREATED = "created"
    INITIALIZED = "initialized"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class Transcoder(Protocol):
    """Capability surface shared by stream and file transcoders."""

    @property
    def state(self) -> LifecycleState: ...

    def initialize(self) -> None: ...

    def start(
        self,
        token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> None: ...

    def wait(self) -> None: ...

    def write_channel(self, index: int, data: bytes) -> None: ...

    def read_channel(self, index: int, size: int | None = None) -> bytes: ...

    def readinto_channel(self, index: int, buffer: bytearray | memoryview) -> int: ...

    def close_inputs(self) -> None: ...

    def terminate(self) -> None: ...


class ProcessController:
    """Own one ffmpeg process from argument building to terminal cleanup.

    Subclasses provide the endpoint topology (`_prepare`, `_build_args`,
    `_popen_kwargs`, `_after_spawn`, `_release_resources`) and channel I/O.
    """

    mode = "process"

    def __init__(
        self,
        descriptor: OperationDescriptor,
        *,
        settings: EngineSettings | None = None,
        event_logger: EngineLogger | None = None,
    ) -> None:
        self._requested = descriptor
        self._descriptor: OperationDescriptor | None = None
        self._settings = settings if settings is not None else EngineSettings()
        self._logger = (event_logger or EngineLogger()).bind(mode=self.mode)
        self._state = LifecycleState.CREATED
        self._state_lock = threading.RLock()
        self._executable: str | None = None
        self._args: list[str] = []
        self._process: subprocess.Popen[bytes] | None = None
        self._stderr_tail = TailBuffer(self._settings.stderr_tail_limit)
        self._stderr_pump: threading.Thread | None = None
        self._token: CancellationToken | None = None
        self._parent_token: CancellationToken | None = None
        self._outcome: TranscodeError | None = None
        self._exit_observed = False

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def descriptor(self) -> OperationDescriptor:
        """Effective (defaulted) descriptor once initialized, else the requested one."""

        return self._descriptor if self._descriptor is not None else self._requested

    @property
    def args(self) -> list[str]:
        """Argument vector passed to ffmpeg, without the executable."""

        return list(self._args)

    @property
    def command(self) -> list[str]:
        """Full command line, available after initialization."""

        if self._executable is None:
            return []
        return [self._executable, *self._args]

    @property
    def returncode(self) -> int | None:
        return None if self._process is None else self._process.returncode

    @property
    def stderr_tail(self) -> str:
        """Captured tail of ffmpeg diagnostics; complete once `wait()` returned."""

        return self._stderr_tail.text()

    @property
    def cancellation_token(self) -> CancellationToken | None:
        return self._token

    def initialize(self) -> None:
        """Default and validate the descriptor, resolve ffmpeg, wire and build arguments.

        Raises:
            ConfigurationError: For an invalid descriptor or settings.
            ToolNotFoundError: When ffmpeg cannot be located.
            ResourceError: For pipe allocation or filesystem probing failures.
        """

        with self._state_lock:
            if self._state is not LifecycleState.CREATED:
                return
            self._logger.log_stage_start("init")
            try:
                descriptor = self._requested.apply_defaults()
                descriptor.validate()
                self._settings.validate()
                self._check_mode(descriptor)
                executable = require_executable(self._settings.executable)
                self._prepare(descriptor)
                args = self._build_args(descriptor)
            except TranscodeError as exc:
                self._release_resources()
                self._logger.log_stage_failure("init", type(exc).__name__)
                raise
            self._descriptor = descriptor
            self._executable = executable
            self._args = args
            self._state = LifecycleState.INITIALIZED
            self._logger.log_stage_complete(
                "init",
                operation=descriptor.operation.value,
                args=len(args),
            )

    def start(
        self,
        token: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> None:
        """Spawn ffmpeg; initializes first when needed.

        Args:
            token: Caller cancellation token; cancelling it terminates this run.
            timeout: Optional deadline in seconds for the whole run.

        Raises:
            StartError: When the process cannot be spawned or was already started.
            CancelledError: When `token` fired before the process started.
        """

        with self._state_lock:
            if self._state in (LifecycleState.RUNNING, LifecycleState.DRAINING):
                raise StartError("transcoder is already running.")
            if self._state is LifecycleState.TERMINATED:
                raise StartError("transcoder was terminated and cannot be restarted.")

            self.initialize()
            self._token = self._create_token(token, timeout)
            if self._token.cancelled:
                self._outcome = CancelledError(self._token.reason or TERMINATE_REASON)
                self._finish_without_process()
                raise self._outcome

            self._logger.log_stage_start("start")
            try:
                process = subprocess.Popen(self.command, **self._popen_kwargs())
            except (OSError, ValueError) as exc:
                self._finish_without_process()
                self._logger.log_stage_failure("start", type(exc).__name__)
                raise StartError(
                    f"Could not start ffmpeg `{self._executable}`: {exc}",
                    hint="Verify the executable is runnable by the current user.",
                ) from exc

            self._process = process
            self._after_spawn(process)
            self._start_stderr_pump(process.stderr)
            self._state = LifecycleState.RUNNING
            self._logger.log_stage_complete("start", pid=process.pid)

        self._token.add_callback(self._on_cancelled)

    def wait(self) -> None:
        """Block until ffmpeg exits and report how the run ended.

        Raises:
            CancelledError: When the run was cancelled or hit its deadline.
            ProcessExitError: When ffmpeg exited nonzero; carries the stderr tail.
            EngineStateError: When the process was never started.
        """

        process = self._process
        if process is None:
            if self._outcome is not None:
                raise self._outcome
            raise EngineStateError("transcoder was not started.")

        outcome = self._observe_exit(process)
        if outcome is not None:
            raise outcome

    def terminate(self) -> None:
        """Cancel the run, kill ffmpeg and close every remaining pipe end.

        Safe to call in any state and any number of times.
        """

        token = self._token
        if token is not None:
            token.cancel(TERMINATE_REASON)
        self._kill_and_release()
        process = self._process
        if process is None:
            with self._state_lock:
                self._state = LifecycleState.TERMINATED
                self._detach_token()
            return
        self._observe_exit(process)

    def close_inputs(self) -> None:
        """Signal end-of-input to ffmpeg."""

        with self._state_lock:
            self._release_inputs()
            if self._state is LifecycleState.RUNNING:
                self._state = LifecycleState.DRAINING
                self._logger.log_debug("channel", "inputs_closed")

    def __enter__(self) -> ProcessController:
        return self

    def __exit__(self, *_: object) -> None:
        self.terminate()

    def _check_mode(self, descriptor: OperationDescriptor) -> None:
        raise NotImplementedError

    def _prepare(self, descriptor: OperationDescriptor) -> None:
        raise NotImplementedError

    def _build_args(self, descriptor: OperationDescriptor) -> list[str]:
        raise NotImplementedError

    def _popen_kwargs(self) -> dict[str, Any]:
        raise NotImplementedError

    def _after_spawn(self, process: subprocess.Popen[bytes]) -> None:
        """Hook run right after a successful spawn."""

    def _release_inputs(self) -> None:
        """Close parent-owned input ends."""

    def _release_resources(self) -> None:
        """Close every parent-held resource."""

    def _create_token(
        self,
        token: CancellationToken | None,
        timeout: float | None,
    ) -> CancellationToken:
        """Create the run's own token, linked to the caller's and armed with the deadline."""

        if token is not None:
            self._parent_token = token
            run_token = token.child()
        else:
            run_token = CancellationToken()
        if timeout is not None:
            run_token.cancel_after(timeout)
        return run_token

    def _detach_token(self) -> None:
        """Stop the deadline timer and unlink from the caller's token."""

        if self._token is not None:
            self._token.dispose()
            self._token.remove_callback(self._on_cancelled)
        if self._parent_token is not None and self._token is not None:
            self._parent_token.release_child(self._token)
            self._parent_token = None

    def _on_cancelled(self, reason: str) -> None:
        self._logger.log_debug("cancel", "cancelled", reason=reason)
        self._kill_and_release()

    def _kill_and_release(self) -> None:
        """Kill ffmpeg if it still runs, then close every parent-held pipe end."""

        process = self._process
        if process is not None and process.poll() is None:
            process.kill()
        with self._state_lock:
            self._release_resources()

    def _finish_without_process(self) -> None:
        """Terminal cleanup for runs that never got a process."""

        self._release_resources()
        self._state = LifecycleState.TERMINATED
        self._detach_token()

    def _observe_exit(self, process: subprocess.Popen[bytes]) -> TranscodeError | None:
        """Reap ffmpeg, finish the stderr tail and record the outcome once."""

        returncode = process.wait()
        self._join_stderr_pump()
        with self._state_lock:
            if self._exit_observed:
                return self._outcome
            self._exit_observed = True
            self._outcome = self._classify_exit(returncode)
            self._state = LifecycleState.TERMINATED
            self._release_inputs()
            self._detach_token()
            if self._outcome is None:
                self._logger.log_stage_complete("wait", returncode=returncode)
            else:
                self._logger.log_stage_failure(
                    "wait",
                    type(self._outcome).__name__,
                    returncode=returncode,
                )
            return self._outcome

    def _classify_exit(self, returncode: int) -> TranscodeError | None:
        """Cancellation wins over exit status."""

        if self._token is not None and self._token.cancelled:
            return CancelledError(self._token.reason or TERMINATE_REASON)
        if returncode != 0:
            return ProcessExitError(returncode, self._stderr_tail.text())
        return None

    def _start_stderr_pump(self, stream: BinaryIO | None) -> None:
        """Drain ffmpeg stderr so it never blocks on a full diagnostic pipe."""

        if stream is None:
            return
        self._stderr_pump = threading.Thread(
            target=self._pump_stderr,
            args=(stream,),
            name=f"audioflow-stderr-{self.mode}",
            daemon=True,
        )
        self._stderr_pump.start()

    def _pump_stderr(self, stream: BinaryIO) -> None:
        with stream:
            while True:
                chunk = stream.read(_STDERR_READ_SIZE)
                if not chunk:
                    break
                self._stderr_tail.write(chunk)

    def _join_stderr_pump(self) -> None:
        pump = self._stderr_pump
        if pump is not None:
            pump.join()
