"""Unit tests for deterministic ffmpeg argument and filter-graph construction."""

from __future__ import annotations

import pytest

from audioflow.config import EngineSettings
from audioflow.errors import ConfigurationError
from audioflow.models import (
    AudioFormat,
    ChannelSpec,
    MergePolicy,
    OperationDescriptor,
    OperationType,
)
from audioflow.transcode.builder import (
    ChannelEndpoints,
    build_arguments,
    build_filter_graph,
    build_input_args,
    build_output_args,
)


LOW_LATENCY = [
    "-analyzeduration",
    "0",
    "-probesize",
    "32",
    "-fflags",
    "+nobuffer",
    "-flags",
    "+low_delay",
]


def _split_descriptor(custom_filter: str | None = None) -> OperationDescriptor:
    return OperationDescriptor(
        operation=OperationType.SPLIT,
        inputs=(ChannelSpec(format=AudioFormat.MP3, sample_rate=44100, channels=2),),
        outputs=(
            ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),
            ChannelSpec(format=AudioFormat.WAV, sample_rate=16000, channels=1),
        ),
        custom_filter=custom_filter,
    )


def _merge_descriptor(
    policy: MergePolicy,
    output_channels: int = 2,
    custom_filter: str | None = None,
) -> OperationDescriptor:
    return OperationDescriptor(
        operation=OperationType.MERGE,
        merge_policy=policy,
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.WAV, sample_rate=16000, channels=output_channels),),
        custom_filter=custom_filter,
    )


def test_convert_stream_arguments_match_expected_vector() -> None:
    """Convert over pipes should emit the low-latency prefix, raw input and `-af`."""

    descriptor = OperationDescriptor(
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.WAV, sample_rate=16000, channels=1),),
    )

    args = build_arguments(descriptor, ChannelEndpoints(inputs=("pipe:0",), outputs=("pipe:1",)))

    assert args == [
        "-hide_banner",
        "-loglevel",
        "error",
        *LOW_LATENCY,
        "-ar",
        "8000",
        "-ac",
        "1",
        "-thread_queue_size",
        "1024",
        "-f",
        "s16le",
        "-i",
        "pipe:0",
        "-af",
        "aresample=16000",
        "-ar",
        "16000",
        "-ac",
        "1",
        "-f",
        "wav",
        "pipe:1",
    ]


def test_convert_file_arguments_use_overwrite_flag_and_no_queue_size() -> None:
    """File endpoints should get `-y` and skip stream-only input options."""

    descriptor = OperationDescriptor(
        inputs=(ChannelSpec(format=AudioFormat.WAV),),
        outputs=(ChannelSpec(format=AudioFormat.MP3, sample_rate=44100, channels=2),),
        custom_filter="volume=0.5",
    )

    args = build_arguments(
        descriptor,
        ChannelEndpoints(inputs=("/data/in.wav",), outputs=("/data/out.mp3",)),
    )

    assert args == [
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-f",
        "wav",
        "-i",
        "/data/in.wav",
        "-af",
        "volume=0.5,aresample=44100",
        "-ar",
        "44100",
        "-ac",
        "2",
        "-f",
        "mp3",
        "/data/out.mp3",
    ]


def test_split_graph_resamples_each_leg_to_its_own_rate() -> None:
    """Split legs should each resample to the matching output spec rate."""

    graph = build_filter_graph(_split_descriptor())

    assert graph.expression == (
        "[0:a]channelsplit=channel_layout=stereo[l][r]; "
        "[l]aresample=8000[left]; "
        "[r]aresample=16000[right]"
    )
    assert graph.map_tags == ("[left]", "[right]")


def test_split_graph_applies_custom_filter_to_both_legs() -> None:
    graph = build_filter_graph(_split_descriptor(custom_filter="highpass=f=200"))

    assert "[l]highpass=f=200,aresample=8000[left]" in graph.expression
    assert "[r]highpass=f=200,aresample=16000[right]" in graph.expression


def test_split_arguments_map_outputs_in_logical_order() -> None:
    """Output 0 maps `[left]` to stdout and output 1 maps `[right]` to the extra pipe."""

    args = build_arguments(
        _split_descriptor(),
        ChannelEndpoints(inputs=("pipe:0",), outputs=("pipe:1", "pipe:7")),
    )

    assert args[args.index("-filter_complex") + 1].startswith("[0:a]channelsplit")
    left_map = args.index("[left]")
    right_map = args.index("[right]")
    assert args[left_map - 1] == "-map"
    assert args[left_map + 1 : left_map + 8] == [
        "-ar",
        "8000",
        "-ac",
        "1",
        "-f",
        "s16le",
        "pipe:1",
    ]
    assert args[right_map + 1 : right_map + 8] == [
        "-ar",
        "16000",
        "-ac",
        "1",
        "-f",
        "wav",
        "pipe:7",
    ]
    # Container (mp3) inputs carry no explicit `-ar`/`-ac`.
    assert args[: args.index("-i") + 2][-6:] == [
        "-thread_queue_size",
        "1024",
        "-f",
        "mp3",
        "-i",
        "pipe:0",
    ]


def test_side_by_side_merge_graph_joins_resampled_inputs() -> None:
    graph = build_filter_graph(_merge_descriptor(MergePolicy.SIDE_BY_SIDE))

    assert graph.expression == (
        "[0:a]aresample=16000[a0]; "
        "[1:a]aresample=16000[a1]; "
        "[a0][a1]join=inputs=2:channel_layout=stereo[out]"
    )
    assert graph.map_tags == ("[out]",)


def test_mix_merge_fans_mono_mix_out_to_stereo_target() -> None:
    """The stereo mix target duplicates the mixed signal on both sides."""

    graph = build_filter_graph(_merge_descriptor(MergePolicy.MIX))

    assert graph.expression.endswith(
        "[a0][a1]amix=inputs=2:duration=longest[mixed]; [mixed]pan=stereo|c0=c0|c1=c0[out]"
    )


def test_mix_merge_to_mono_target_passes_mix_through() -> None:
    graph = build_filter_graph(_merge_descriptor(MergePolicy.MIX, output_channels=1))

    assert graph.expression.endswith("[mixed]anull[out]")


def test_merge_custom_filter_becomes_final_stage() -> None:
    graph = build_filter_graph(_merge_descriptor(MergePolicy.MIX, custom_filter="volume=2"))

    assert graph.expression.endswith("[out]volume=2[final]")
    assert graph.map_tags == ("[final]",)


def test_merge_arguments_read_secondary_input_from_extra_pipe() -> None:
    args = build_arguments(
        _merge_descriptor(MergePolicy.SIDE_BY_SIDE),
        ChannelEndpoints(inputs=("pipe:0", "pipe:5"), outputs=("pipe:1",)),
    )

    input_positions = [index for index, token in enumerate(args) if token == "-i"]
    assert [args[position + 1] for position in input_positions] == ["pipe:0", "pipe:5"]
    assert args[-9:] == ["-map", "[out]", "-ar", "16000", "-ac", "2", "-f", "wav", "pipe:1"]


def test_builder_is_deterministic() -> None:
    """Identical descriptors and endpoints should produce identical vectors."""

    endpoints = ChannelEndpoints(inputs=("pipe:0", "pipe:4"), outputs=("pipe:1",))
    first = build_arguments(_merge_descriptor(MergePolicy.MIX), endpoints)
    second = build_arguments(_merge_descriptor(MergePolicy.MIX), endpoints)

    assert first == second
    assert build_filter_graph(_split_descriptor()) == build_filter_graph(_split_descriptor())


def test_builder_honours_settings() -> None:
    """Disabling low latency drops the probe flags; queue size follows settings."""

    descriptor = OperationDescriptor(
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
    )
    settings = EngineSettings(low_latency=False, thread_queue_size=64)

    args = build_arguments(
        descriptor,
        ChannelEndpoints(inputs=("pipe:0",), outputs=("pipe:1",)),
        settings,
    )

    assert "-probesize" not in args
    assert "-y" not in args
    assert args[args.index("-thread_queue_size") + 1] == "64"


def test_builder_rejects_endpoint_counts_that_drift_from_topology() -> None:
    with pytest.raises(ConfigurationError, match=r"output endpoints: expected 2, got 1") as exc_info:
        build_arguments(
            _split_descriptor(),
            ChannelEndpoints(inputs=("pipe:0",), outputs=("pipe:1",)),
        )

    assert exc_info.value.stage == "build"


def test_split_graph_rechecks_stereo_input() -> None:
    descriptor = OperationDescriptor(
        operation=OperationType.SPLIT,
        inputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
        outputs=(ChannelSpec(format=AudioFormat.S16LE, sample_rate=8000, channels=1),),
    )

    with pytest.raises(ConfigurationError, match="split requires a stereo input"):
        build_filter_graph(descriptor)


def test_convert_has_no_filter_graph() -> None:
    with pytest.raises(ConfigurationError, match="has no filter graph"):
        build_filter_graph(OperationDescriptor())


def test_input_and_output_fragments() -> None:
    raw = ChannelSpec(format=AudioFormat.ALAW, sample_rate=8000, channels=1)

    assert build_input_args(raw, "in.alaw") == ["-ar", "8000", "-ac", "1", "-f", "alaw", "-i", "in.alaw"]
    assert build_output_args(raw, "out.alaw", "[out]") == [
        "-map",
        "[out]",
        "-ar",
        "8000",
        "-ac",
        "1",
        "-f",
        "alaw",
        "out.alaw",
    ]
