"""Deterministic ffmpeg argument and filter-graph construction.

Responsibilities:
- Map a validated `OperationDescriptor` plus ordered channel endpoints to one ffmpeg
  argument vector.
- Build `channelsplit` / `join` / `amix` filter graphs and the output tags they expose.

Every function here is pure: identical descriptors, endpoints and settings always
produce identical argument vectors. Descriptors are expected to be validated; only the
channel counts the graphs depend on are re-checked.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..config import EngineSettings
from ..errors import ConfigurationError
from ..models import ChannelSpec, MergePolicy, OperationDescriptor, OperationType, topology_for


_STREAM_ENDPOINT_PREFIX = "pipe:"
_LOW_LATENCY_ARGS = (
    "-analyzeduration",
    "0",
    "-probesize",
    "32",
    "-fflags",
    "+nobuffer",
    "-flags",
    "+low_delay",
)


@dataclass(frozen=True, slots=True)
class ChannelEndpoints:
    """Concrete endpoint names for each logical channel, in logical order.

    Attributes:
        inputs: `pipe:N` names or file paths read by ffmpeg.
        outputs: `pipe:N` names or file paths written by ffmpeg.
    """

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]

    @property
    def streaming(self) -> bool:
        """Return whether any endpoint is a live pipe."""

        return any(is_stream_endpoint(item) for item in (*self.inputs, *self.outputs))


@dataclass(frozen=True, slots=True)
class FilterGraph:
    """A `-filter_complex` expression and the output tags to map, in output order."""

    expression: str
    map_tags: tuple[str, ...]


def is_stream_endpoint(endpoint: str) -> bool:
    """Return whether an endpoint names an inherited descriptor rather than a file."""

    return endpoint.startswith(_STREAM_ENDPOINT_PREFIX)


def build_input_args(
    spec: ChannelSpec,
    source: str,
    *,
    thread_queue_size: int = 1024,
) -> list[str]:
    """Build `-ar/-ac` (raw only), queue size (pipes only), `-f` and `-i` arguments."""

    args: list[str] = []
    if spec.is_raw:
        args.extend(["-ar", str(spec.sample_rate), "-ac", str(spec.channels)])
    if is_stream_endpoint(source):
        args.extend(["-thread_queue_size", str(thread_queue_size)])
    args.extend(["-f", _format_tag(spec), "-i", source])
    return args


def build_output_args(spec: ChannelSpec, target: str, map_tag: str | None = None) -> list[str]:
    """Build explicit `-ar/-ac/-f` output arguments, optionally preceded by `-map`."""

    args: list[str] = []
    if map_tag is not None:
        args.extend(["-map", map_tag])
    args.extend(
        [
            "-ar",
            str(spec.sample_rate),
            "-ac",
            str(spec.channels),
            "-f",
            _format_tag(spec),
            target,
        ]
    )
    return args


def build_convert_filter(descriptor: OperationDescriptor) -> str:
    """Build the `-af` chain for convert: custom filter first, then resampling."""

    stages: list[str] = []
    if descriptor.custom_filter:
        stages.append(descriptor.custom_filter)
    stages.append(f"aresample={descriptor.output_spec(0).sample_rate}")
    return ",".join(stages)


def build_filter_graph(descriptor: OperationDescriptor) -> FilterGraph:
    """Build the `-filter_complex` graph for split and merge operations.

    Raises:
        ConfigurationError: For convert, or when split input is not stereo.
    """

    if descriptor.operation is OperationType.SPLIT:
        return _build_split_graph(descriptor)
    if descriptor.operation is OperationType.MERGE:
        return _build_merge_graph(descriptor)
    raise ConfigurationError(
        f"operation `{_operation_label(descriptor)}` has no filter graph.",
        stage="build",
    )


def build_arguments(
    descriptor: OperationDescriptor,
    endpoints: ChannelEndpoints,
    settings: EngineSettings | None = None,
) -> list[str]:
    """Build the complete ffmpeg argument vector (without the executable).

    Args:
        descriptor: Defaulted and validated descriptor.
        endpoints: Endpoint names for every logical channel of the operation.
        settings: Engine tuning; defaults apply when omitted.

    Raises:
        ConfigurationError: When the endpoints do not cover the operation's topology.
    """

    resolved_settings = settings if settings is not None else EngineSettings()
    if descriptor.operation not in (
        OperationType.CONVERT,
        OperationType.SPLIT,
        OperationType.MERGE,
    ):
        raise ConfigurationError(
            f"unsupported operation `{_operation_label(descriptor)}`.",
            stage="build",
        )
    topology = topology_for(descriptor.operation)
    _require_count("input endpoints", len(endpoints.inputs), len(topology.inputs))
    _require_count("output endpoints", len(endpoints.outputs), len(topology.outputs))

    args = ["-hide_banner", "-loglevel", "error"]
    if endpoints.streaming:
        if resolved_settings.low_latency:
            args.extend(_LOW_LATENCY_ARGS)
    else:
        args.append("-y")

    for index, source in enumerate(endpoints.inputs):
        args.extend(
            build_input_args(
                descriptor.input_spec(index),
                source,
                thread_queue_size=resolved_settings.thread_queue_size,
            )
        )

    if descriptor.operation is OperationType.CONVERT:
        args.extend(["-af", build_convert_filter(descriptor)])
        args.extend(build_output_args(descriptor.output_spec(0), endpoints.outputs[0]))
        return args

    graph = build_filter_graph(descriptor)
    args.extend(["-filter_complex", graph.expression])
    for index, target in enumerate(endpoints.outputs):
        args.extend(
            build_output_args(descriptor.output_spec(index), target, graph.map_tags[index])
        )
    return args


def _build_split_graph(descriptor: OperationDescriptor) -> FilterGraph:
    """Split one stereo input into two independently resampled mono legs."""

    if descriptor.input_spec(0).channels != 2:
        raise ConfigurationError(
            "split requires a stereo input (channels=2).",
            stage="build",
        )
    left_rate = descriptor.output_spec(0).sample_rate
    right_rate = descriptor.output_spec(1).sample_rate
    expression = (
        "[0:a]channelsplit=channel_layout=stereo[l][r]; "
        f"[l]{_leg_chain(descriptor.custom_filter, left_rate)}[left]; "
        f"[r]{_leg_chain(descriptor.custom_filter, right_rate)}[right]"
    )
    return FilterGraph(expression=expression, map_tags=("[left]", "[right]"))


def _build_merge_graph(descriptor: OperationDescriptor) -> FilterGraph:
    """Resample both inputs to the target rate, then join or mix them."""

    target = descriptor.output_spec(0)
    parts = [f"[{index}:a]aresample={target.sample_rate}[a{index}]" for index in range(2)]

    if descriptor.merge_policy is MergePolicy.SIDE_BY_SIDE:
        parts.append("[a0][a1]join=inputs=2:channel_layout=stereo[out]")
    else:
        parts.append("[a0][a1]amix=inputs=2:duration=longest[mixed]")
        # Stereo targets get the mono mix copied to both sides.
        if target.channels == 2:
            parts.append("[mixed]pan=stereo|c0=c0|c1=c0[out]")
        else:
            parts.append("[mixed]anull[out]")

    if descriptor.custom_filter:
        parts.append(f"[out]{descriptor.custom_filter}[final]")
        return FilterGraph(expression="; ".join(parts), map_tags=("[final]",))
    return FilterGraph(expression="; ".join(parts), map_tags=("[out]",))


def _leg_chain(custom_filter: str | None, sample_rate: int) -> str:
    """Filter chain of one split leg."""

    if custom_filter:
        return f"{custom_filter},aresample={sample_rate}"
    return f"aresample={sample_rate}"


def _format_tag(spec: ChannelSpec) -> str:
    """Return the `-f` value for a validated spec."""

    if spec.format is None:
        raise ConfigurationError("channel spec has no format.", stage="build")
    return spec.format.value


def _require_count(label: str, actual: int, expected: int) -> None:
    """Fail instead of defaulting when endpoint counts drift from the topology."""

    if actual != expected:
        raise ConfigurationError(
            f"{label}: expected {expected}, got {actual}.",
            stage="build",
        )


def _operation_label(descriptor: OperationDescriptor) -> str:
    """Printable operation name, tolerant of unvalidated values."""

    operation = descriptor.operation
    return operation.value if isinstance(operation, OperationType) else str(operation)
