"""Shared pytest fixtures for the full audioflow test suite."""

from __future__ import annotations

from pathlib import Path
import shutil
import sys
import threading
from typing import Callable

import pytest

from audioflow.config import EngineSettings
from audioflow.errors import ChannelClosedError
from audioflow.transcode.process import ProcessController


# Behaves like ffmpeg for the endpoints it is handed: every `-i` source is read to the
# end concurrently, then convert/merge concatenate the inputs into the single output
# and split de-interleaves 16-bit stereo frames into the two outputs.
_STAND_IN_BODY = '''
import os
import sys
import threading
import time


def _endpoints(argv):
    inputs = [argv[index + 1] for index, token in enumerate(argv[:-1]) if token == "-i"]
    outputs = [
        argv[index]
        for index in range(2, len(argv))
        if argv[index - 2] == "-f" and not argv[index].startswith("-")
    ]
    return inputs, outputs


def _open(endpoint, mode):
    if endpoint.startswith("pipe:"):
        return os.fdopen(int(endpoint[len("pipe:"):]), mode)
    return open(endpoint, mode)


def main():
    argv = sys.argv[1:]
    record = os.environ.get("STAND_IN_ARGV_FILE")
    if record:
        with open(record, "w", encoding="utf-8") as handle:
            handle.write("\\n".join(argv))
    if os.environ.get("STAND_IN_FAIL"):
        sys.stderr.write("pipe:0: Invalid data found when processing input\\n")
        sys.stderr.flush()
        return 1
    if os.environ.get("STAND_IN_HANG"):
        time.sleep(60)
        return 0

    inputs, outputs = _endpoints(argv)
    payloads = [b""] * len(inputs)

    def drain(index, endpoint):
        with _open(endpoint, "rb") as stream:
            payloads[index] = stream.read()

    readers = [
        threading.Thread(target=drain, args=(index, endpoint))
        for index, endpoint in enumerate(inputs)
    ]
    for reader in readers:
        reader.start()
    for reader in readers:
        reader.join()

    if len(outputs) == 2:
        data = payloads[0]
        usable = len(data) - len(data) % 4
        legs = (
            b"".join(data[offset:offset + 2] for offset in range(0, usable, 4)),
            b"".join(data[offset + 2:offset + 4] for offset in range(0, usable, 4)),
        )
    else:
        legs = (b"".join(payloads),)

    for endpoint, leg in zip(outputs, legs):
        with _open(endpoint, "wb") as stream:
            stream.write(leg)
    return 0


sys.exit(main())
'''


@pytest.fixture
def stand_in_ffmpeg(tmp_path: Path) -> Path:
    """Provide an executable that mimics ffmpeg's endpoint handling without decoding."""

    script_path = tmp_path / "bin" / "ffmpeg"
    script_path.parent.mkdir(parents=True, exist_ok=True)
    script_path.write_text(f"#!{sys.executable}\n{_STAND_IN_BODY}", encoding="utf-8")
    script_path.chmod(0o755)
    return script_path


@pytest.fixture
def stand_in_settings(stand_in_ffmpeg: Path) -> EngineSettings:
    """Engine settings pointing at the stand-in executable."""

    return EngineSettings(executable=str(stand_in_ffmpeg))


@pytest.fixture
def ffmpeg_executable() -> str:
    """Provide a real ffmpeg binary or skip tests that need actual transcoding."""

    located = shutil.which("ffmpeg")
    if located is None:
        pytest.skip("ffmpeg is not installed")
    return located


ChannelDriver = Callable[[ProcessController, dict[int, bytes], tuple[int, ...]], dict[int, bytes]]


@pytest.fixture
def drive_channels() -> ChannelDriver:
    """Run one writer thread per input and one reader thread per output, then wait."""

    def _drive(
        transcoder: ProcessController,
        payloads: dict[int, bytes],
        output_indices: tuple[int, ...],
    ) -> dict[int, bytes]:
        collected: dict[int, bytearray] = {index: bytearray() for index in output_indices}
        errors: list[BaseException] = []

        def write(index: int, payload: bytes) -> None:
            try:
                for offset in range(0, len(payload), 1024):
                    transcoder.write_channel(index, payload[offset : offset + 1024])
            except BaseException as exc:  # surfaced through `errors`
                errors.append(exc)

        def read(index: int) -> None:
            try:
                while True:
                    chunk = transcoder.read_channel(index)
                    if not chunk:
                        return
                    collected[index].extend(chunk)
            except ChannelClosedError:
                return
            except BaseException as exc:
                errors.append(exc)

        writers = [
            threading.Thread(target=write, args=(index, payload))
            for index, payload in payloads.items()
        ]
        readers = [threading.Thread(target=read, args=(index,)) for index in output_indices]
        for thread in (*readers, *writers):
            thread.start()
        for writer in writers:
            writer.join(timeout=30)
        transcoder.close_inputs()
        for reader in readers:
            reader.join(timeout=30)
        transcoder.wait()
        if errors:
            raise errors[0]
        return {index: bytes(data) for index, data in collected.items()}

    return _drive
