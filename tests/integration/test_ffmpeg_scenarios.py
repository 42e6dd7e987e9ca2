"""End-to-end scenarios against a real ffmpeg binary (skipped when none is installed)."""

from __future__ import annotations

import math
from pathlib import Path
import struct
import subprocess
import threading
import time

import pytest

from audioflow.config import EngineSettings
from audioflow.errors import CancelledError, ChannelClosedError, ProcessExitError
from audioflow.models import (
    AudioFormat,
    ChannelSpec,
    MergePolicy,
    OperationDescriptor,
    OperationType,
)
from audioflow.transcode.cancellation import CancellationToken
from audioflow.transcode.file import FileTranscoder
from audioflow.transcode.stream import StreamTranscoder


def _sine_s16le(frequency: float, sample_rate: int, seconds: float) -> bytes:
    count = int(sample_rate * seconds)
    return b"".join(
        struct.pack("<h", int(12000 * math.sin(2 * math.pi * frequency * index / sample_rate)))
        for index in range(count)
    )


def _stereo_mp3(ffmpeg_executable: str) -> bytes:
    completed = subprocess.run(
        [
            ffmpeg_executable,
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "lavfi",
            "-i",
            "sine=frequency=440:sample_rate=44100:duration=1",
            "-ac",
            "2",
            "-f",
            "mp3",
            "pipe:1",
        ],
        check=True,
        capture_output=True,
    )
    return completed.stdout


@pytest.fixture
def ffmpeg_settings(ffmpeg_executable: str) -> EngineSettings:
    return EngineSettings(executable=ffmpeg_executable)


def test_scenario_convert_raw_to_wav(ffmpeg_settings: EngineSettings, drive_channels) -> None:
    descriptor = OperationDescriptor(
        operation=OperationType.CONVERT,
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.WAV, sample_rate=8000, channels=1),),
    )
    transcoder = StreamTranscoder(descriptor, settings=ffmpeg_settings)

    transcoder.start()
    outputs = drive_channels(transcoder, {0: _sine_s16le(440, 8000, 1.0)}, (0,))

    assert len(outputs[0]) > 0
    assert outputs[0][:4] == b"RIFF"
    transcoder.terminate()


def test_scenario_split_stereo_mp3(
    ffmpeg_executable: str,
    ffmpeg_settings: EngineSettings,
    drive_channels,
) -> None:
    descriptor = OperationDescriptor(
        operation=OperationType.SPLIT,
        inputs=(ChannelSpec(format=AudioFormat.MP3, sample_rate=44100, channels=2),),
        outputs=(
            ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),
            ChannelSpec(format=AudioFormat.WAV, sample_rate=16000, channels=1),
        ),
    )
    transcoder = StreamTranscoder(descriptor, settings=ffmpeg_settings)

    transcoder.start()
    outputs = drive_channels(transcoder, {0: _stereo_mp3(ffmpeg_executable)}, (0, 1))

    assert len(outputs[0]) > 0
    assert len(outputs[1]) > 0
    transcoder.terminate()


def test_scenario_side_by_side_merge_with_paced_inputs(ffmpeg_settings: EngineSettings) -> None:
    """Two independently paced mono writers produce one stereo wav stream."""

    mono = ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1)
    descriptor = OperationDescriptor(
        operation=OperationType.MERGE,
        merge_policy=MergePolicy.SIDE_BY_SIDE,
        inputs=(mono, mono),
        outputs=(ChannelSpec(format=AudioFormat.WAV, sample_rate=16000, channels=2),),
    )
    transcoder = StreamTranscoder(descriptor, settings=ffmpeg_settings)
    collected = bytearray()

    def write(index: int, payload: bytes, pause: float) -> None:
        for offset in range(0, len(payload), 800):
            transcoder.write_channel(index, payload[offset : offset + 800])
            time.sleep(pause)

    def read() -> None:
        while chunk := transcoder.read_channel(0):
            collected.extend(chunk)

    transcoder.start()
    writers = [
        threading.Thread(target=write, args=(0, _sine_s16le(440, 8000, 0.5), 0.001)),
        threading.Thread(target=write, args=(1, _sine_s16le(660, 8000, 0.5), 0.003)),
    ]
    reader = threading.Thread(target=read)
    reader.start()
    for writer in writers:
        writer.start()
    for writer in writers:
        writer.join(timeout=30)
    transcoder.close_inputs()
    reader.join(timeout=30)
    transcoder.wait()
    transcoder.terminate()

    assert collected[:4] == b"RIFF"
    # Stereo wav header: channel count at byte offset 22.
    assert struct.unpack("<H", bytes(collected[22:24]))[0] == 2


def test_scenario_cancellation_is_not_a_runtime_error(ffmpeg_settings: EngineSettings) -> None:
    descriptor = OperationDescriptor(
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
    )
    token = CancellationToken()
    transcoder = StreamTranscoder(descriptor, settings=ffmpeg_settings)
    transcoder.start(token)
    finished = threading.Event()

    def read() -> None:
        try:
            while transcoder.read_channel(0):
                pass
        except ChannelClosedError:
            pass
        finished.set()

    reader = threading.Thread(target=read)
    reader.start()
    token.cancel()

    assert finished.wait(timeout=10)
    with pytest.raises(CancelledError):
        transcoder.wait()


def test_ffmpeg_rejection_carries_diagnostic_tail(
    ffmpeg_settings: EngineSettings,
    tmp_path: Path,
) -> None:
    """An unknown filter should be reported as ffmpeg rejecting the run."""

    source = tmp_path / "in.raw"
    source.write_bytes(_sine_s16le(440, 8000, 0.1))
    descriptor = OperationDescriptor(
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.WAV, sample_rate=8000, channels=1),),
        custom_filter="no_such_filter_name",
        input_paths=(source,),
        output_paths=(tmp_path / "out.wav",),
    )

    with FileTranscoder(descriptor, settings=ffmpeg_settings) as transcoder:
        transcoder.start()
        with pytest.raises(ProcessExitError) as exc_info:
            transcoder.wait()

    assert exc_info.value.returncode != 0
    assert exc_info.value.stderr_tail
