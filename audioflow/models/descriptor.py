"""Declarative operation descriptors for the transcoding engine.

Responsibilities:
- Represent one requested transformation as an immutable, validated value.
- Resolve per-channel format parameters with broadcast semantics in exactly one place.

Key types:
- `ChannelSpec`: format, sample rate and channel count of one logical channel.
- `OperationDescriptor`: operation, channel specs, merge policy and optional endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

from ..errors import ConfigurationError
from .formats import AudioFormat, MergePolicy, OperationType
from .topology import topology_for


_PLACEHOLDER_SAMPLE_RATE = 8000
_PLACEHOLDER_CHANNELS = 1


@dataclass(frozen=True, slots=True)
class ChannelSpec:
    """Format parameters of one logical channel.

    Attributes:
        format: ffmpeg format tag; `None` only on the defaulting placeholder.
        sample_rate: Sample rate in Hz, `0` when ffmpeg should infer it.
        channels: Channel count, `0` when ffmpeg should infer it.
    """

    format: AudioFormat | None = None
    sample_rate: int = 0
    channels: int = 0

    @property
    def is_raw(self) -> bool:
        """Return whether this spec describes uncompressed sample data."""

        return self.format is None or self.format.is_raw

    def check(self, label: str, *, require_shape: bool) -> None:
        """Raise `ConfigurationError` when required fields are missing."""

        if self.format is None:
            raise ConfigurationError(f"{label}: format is missing.")
        if not require_shape:
            return
        if self.sample_rate <= 0:
            raise ConfigurationError(
                f"{label}: sample_rate is required for raw formats and outputs."
            )
        if self.channels <= 0:
            raise ConfigurationError(
                f"{label}: channels is required for raw formats and outputs."
            )


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """Immutable description of one requested transformation.

    Attributes:
        operation: Requested operation; `None` defaults to convert.
        inputs: Input channel specs; one entry applies to every input channel.
        outputs: Output channel specs; one entry applies to every output channel.
        merge_policy: Merge combination policy, ignored outside merge operations.
        custom_filter: Optional ffmpeg filter expression applied to the signal path.
        input_paths: File-mode input paths, empty for stream mode.
        output_paths: File-mode output paths, empty for stream mode.
    """

    operation: OperationType | None = OperationType.CONVERT
    inputs: tuple[ChannelSpec, ...] = field(default_factory=tuple)
    outputs: tuple[ChannelSpec, ...] = field(default_factory=tuple)
    merge_policy: MergePolicy = MergePolicy.MIX
    custom_filter: str | None = None
    input_paths: tuple[Path, ...] = field(default_factory=tuple)
    output_paths: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def is_file_mode(self) -> bool:
        """Return whether the descriptor names disk endpoints."""

        return bool(self.input_paths or self.output_paths)

    def input_spec(self, index: int) -> ChannelSpec:
        """Resolve the effective spec of one input channel."""

        return _resolve_spec(self.inputs, index)

    def output_spec(self, index: int) -> ChannelSpec:
        """Resolve the effective spec of one output channel."""

        return _resolve_spec(self.outputs, index)

    def apply_defaults(self) -> OperationDescriptor:
        """Return a copy with placeholders filled in; valid descriptors are unchanged."""

        placeholder = ChannelSpec(
            format=None,
            sample_rate=_PLACEHOLDER_SAMPLE_RATE,
            channels=_PLACEHOLDER_CHANNELS,
        )
        changes: dict[str, object] = {}
        if self.operation is None:
            changes["operation"] = OperationType.CONVERT
        if not self.inputs:
            changes["inputs"] = (placeholder,)
        if not self.outputs:
            changes["outputs"] = (placeholder,)
        if self.custom_filter is not None and not self.custom_filter.strip():
            changes["custom_filter"] = None
        if not changes:
            return self
        return replace(self, **changes)

    def validate(self) -> None:
        """Validate the descriptor before any pipe is allocated or argument built.

        Raises:
            ConfigurationError: Naming the offending field.
        """

        if not isinstance(self.operation, OperationType):
            raise ConfigurationError(f"operation: unsupported operation `{self.operation}`.")
        if not isinstance(self.merge_policy, MergePolicy):
            raise ConfigurationError(
                f"merge_policy: unsupported merge policy `{self.merge_policy}`."
            )

        topology = topology_for(self.operation)
        self._check_sequence_length("inputs", self.inputs, len(topology.inputs))
        self._check_sequence_length("outputs", self.outputs, len(topology.outputs))

        for index in range(len(topology.inputs)):
            spec = self.input_spec(index)
            spec.check(f"inputs[{index}]", require_shape=spec.is_raw)
        for index in range(len(topology.outputs)):
            self.output_spec(index).check(f"outputs[{index}]", require_shape=True)

        if self.operation is OperationType.SPLIT:
            self._validate_split()
        elif self.operation is OperationType.MERGE:
            self._validate_merge()

        if self.is_file_mode:
            self._check_paths("input_paths", self.input_paths, len(topology.inputs))
            self._check_paths("output_paths", self.output_paths, len(topology.outputs))

    def _validate_split(self) -> None:
        """Split needs one stereo input."""

        if self.input_spec(0).channels != 2:
            raise ConfigurationError(
                "inputs[0]: split requires a stereo input (channels=2).",
                hint="Set `channels: 2` on the split input.",
            )

    def _validate_merge(self) -> None:
        """Side-by-side merge needs two mono inputs and a stereo output."""

        if self.merge_policy is not MergePolicy.SIDE_BY_SIDE:
            return
        for index in range(2):
            if self.input_spec(index).channels > 1:
                raise ConfigurationError(
                    f"inputs[{index}]: side_by_side merge requires mono inputs (channels=1)."
                )
        if self.output_spec(0).channels != 2:
            raise ConfigurationError(
                "outputs[0]: side_by_side merge requires a stereo output (channels=2)."
            )

    @staticmethod
    def _check_sequence_length(
        label: str,
        specs: tuple[ChannelSpec, ...],
        expected: int,
    ) -> None:
        """Spec sequences broadcast one entry or list one entry per channel."""

        if len(specs) not in (1, expected):
            raise ConfigurationError(
                f"{label}: expected 1 or {expected} channel spec(s), got {len(specs)}."
            )

    @staticmethod
    def _check_paths(label: str, paths: tuple[Path, ...], expected: int) -> None:
        """File mode needs one non-empty path per logical channel."""

        if len(paths) != expected:
            raise ConfigurationError(
                f"{label}: expected {expected} path(s) for this operation, got {len(paths)}."
            )
        for index, path in enumerate(paths):
            if not str(path).strip():
                raise ConfigurationError(f"{label}[{index}]: path is empty.")


def _resolve_spec(specs: tuple[ChannelSpec, ...], index: int) -> ChannelSpec:
    """Resolve broadcast semantics shared by validation and argument building."""

    if not specs:
        return ChannelSpec()
    if len(specs) == 1:
        return specs[0]
    if index < len(specs):
        return specs[index]
    return specs[-1]
