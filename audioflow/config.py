"""Configuration model and loaders for audioflow.

Responsibilities:
- Define engine tuning settings as a typed dataclass.
- Build `OperationDescriptor` values from YAML files or plain mappings.
- Read engine settings from environment variables.

Key types:
- `EngineSettings`: ffmpeg executable override and stream tuning values.
- `ConfigLoader`: static construction helpers for descriptors and settings.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigurationError
from .models import AudioFormat, ChannelSpec, MergePolicy, OperationDescriptor, OperationType
from .parsing import (
    normalize_choice_token,
    normalize_optional_string,
    parse_non_negative_int,
    parse_positive_int,
    parse_required_boolean,
)


DEFAULT_STDERR_TAIL_LIMIT = 2048
DEFAULT_THREAD_QUEUE_SIZE = 1024
DEFAULT_READ_CHUNK_SIZE = 4096


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Engine tuning shared by stream and file transcoders.

    Attributes:
        executable: Explicit ffmpeg path; resolved from bundle/`PATH` when `None`.
        stderr_tail_limit: Bytes of ffmpeg stderr kept for failure reports.
        thread_queue_size: Demuxer queue size requested for pipe inputs.
        low_latency: Whether stream invocations disable probing and input buffering.
        read_chunk_size: Default read size for channel reads.
    """

    executable: str | None = None
    stderr_tail_limit: int = DEFAULT_STDERR_TAIL_LIMIT
    thread_queue_size: int = DEFAULT_THREAD_QUEUE_SIZE
    low_latency: bool = True
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE

    def validate(self) -> None:
        """Validate numeric tuning values."""

        if self.stderr_tail_limit <= 0:
            raise ConfigurationError("`stderr_tail_limit` must be a positive integer.")
        if self.thread_queue_size <= 0:
            raise ConfigurationError("`thread_queue_size` must be a positive integer.")
        if self.read_chunk_size <= 0:
            raise ConfigurationError("`read_chunk_size` must be a positive integer.")


class ConfigLoader:
    """Factory methods for creating descriptors and settings from external sources."""

    _SUPPORTED_KEYS = frozenset(
        {
            "operation",
            "merge_policy",
            "custom_filter",
            "inputs",
            "outputs",
            "input_files",
            "output_files",
        }
    )
    _SUPPORTED_CHANNEL_KEYS = frozenset({"format", "sample_rate", "channels"})

    @staticmethod
    def from_yaml(path: Path) -> OperationDescriptor:
        """Create a descriptor from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the payload is not a valid descriptor mapping.
        """

        path_text = path.read_text(encoding="utf-8")
        try:
            payload = yaml.safe_load(path_text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"YAML config `{path}` could not be parsed: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ConfigurationError(
                f"YAML config `{path}` must contain a top-level mapping/object."
            )
        return ConfigLoader.from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_mapping(
        payload: Mapping[str, Any],
        source_label: str = "config",
    ) -> OperationDescriptor:
        """Create a descriptor from a plain mapping (as loaded from YAML or JSON)."""

        unknown = sorted(str(key) for key in payload if key not in ConfigLoader._SUPPORTED_KEYS)
        if unknown:
            raise ConfigurationError(
                f"{source_label} has unsupported key(s): {', '.join(unknown)}."
            )

        operation = ConfigLoader._parse_choice(
            payload.get("operation"),
            OperationType,
            "operation",
            source_label,
            default=OperationType.CONVERT,
        )
        merge_policy = ConfigLoader._parse_choice(
            payload.get("merge_policy"),
            MergePolicy,
            "merge_policy",
            source_label,
            default=MergePolicy.MIX,
        )

        return OperationDescriptor(
            operation=operation,
            inputs=ConfigLoader._parse_channels(payload.get("inputs"), "inputs", source_label),
            outputs=ConfigLoader._parse_channels(payload.get("outputs"), "outputs", source_label),
            merge_policy=merge_policy,
            custom_filter=normalize_optional_string(payload.get("custom_filter")),
            input_paths=ConfigLoader._parse_paths(
                payload.get("input_files"), "input_files", source_label
            ),
            output_paths=ConfigLoader._parse_paths(
                payload.get("output_files"), "output_files", source_label
            ),
        )

    @staticmethod
    def settings_from_env(env: Mapping[str, str] | None = None) -> EngineSettings:
        """Create engine settings from `AUDIOFLOW_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        try:
            settings = EngineSettings(
                executable=normalize_optional_string(env_map.get("AUDIOFLOW_FFMPEG")),
                stderr_tail_limit=ConfigLoader._env_positive_int(
                    env_map, "AUDIOFLOW_STDERR_TAIL_LIMIT", DEFAULT_STDERR_TAIL_LIMIT
                ),
                thread_queue_size=ConfigLoader._env_positive_int(
                    env_map, "AUDIOFLOW_THREAD_QUEUE_SIZE", DEFAULT_THREAD_QUEUE_SIZE
                ),
                low_latency=ConfigLoader._env_boolean(env_map, "AUDIOFLOW_LOW_LATENCY", True),
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        settings.validate()
        return settings

    @staticmethod
    def _parse_channels(
        raw: object,
        key: str,
        source_label: str,
    ) -> tuple[ChannelSpec, ...]:
        """Parse a list of channel mappings into `ChannelSpec` values."""

        if raw is None:
            return tuple()
        if isinstance(raw, Mapping):
            raw = [raw]
        if not isinstance(raw, list):
            raise ConfigurationError(f"{source_label}: `{key}` must be a list of mappings.")

        specs: list[ChannelSpec] = []
        for index, item in enumerate(raw):
            label = f"{key}[{index}]"
            if not isinstance(item, Mapping):
                raise ConfigurationError(f"{source_label}: `{label}` must be a mapping.")
            unknown = sorted(
                str(name) for name in item if name not in ConfigLoader._SUPPORTED_CHANNEL_KEYS
            )
            if unknown:
                raise ConfigurationError(
                    f"{source_label}: `{label}` has unsupported key(s): {', '.join(unknown)}."
                )
            try:
                sample_rate = parse_non_negative_int(item.get("sample_rate"), f"{label}.sample_rate")
                channels = parse_non_negative_int(item.get("channels"), f"{label}.channels")
            except ValueError as exc:
                raise ConfigurationError(f"{source_label}: {exc}") from exc
            specs.append(
                ChannelSpec(
                    format=ConfigLoader._parse_format(item.get("format"), label, source_label),
                    sample_rate=sample_rate,
                    channels=channels,
                )
            )
        return tuple(specs)

    @staticmethod
    def _parse_format(raw: object, label: str, source_label: str) -> AudioFormat | None:
        """Parse an ffmpeg format tag; `g729` is accepted as an alias of `bit`."""

        token = normalize_choice_token(raw)
        if token is None:
            return None
        if token == "g729":
            return AudioFormat.G729
        try:
            return AudioFormat(token)
        except ValueError as exc:
            supported = ", ".join(item.value for item in AudioFormat)
            raise ConfigurationError(
                f"{source_label}: `{label}.format` value `{raw}` is not supported.",
                hint=f"Supported formats: {supported}.",
            ) from exc

    @staticmethod
    def _parse_choice(
        raw: object,
        choices: type[OperationType] | type[MergePolicy],
        key: str,
        source_label: str,
        *,
        default: OperationType | MergePolicy,
    ) -> Any:
        """Parse an enum token with a default for blank values."""

        token = normalize_choice_token(raw)
        if token is None:
            return default
        try:
            return choices(token)
        except ValueError as exc:
            supported = ", ".join(f"`{item.value}`" for item in choices)
            raise ConfigurationError(
                f"{source_label}: unsupported `{key}` value `{raw}`; supported: {supported}."
            ) from exc

    @staticmethod
    def _parse_paths(raw: object, key: str, source_label: str) -> tuple[Path, ...]:
        """Parse an optional list of file paths."""

        if raw is None:
            return tuple()
        if isinstance(raw, (str, Path)):
            raw = [raw]
        if not isinstance(raw, list):
            raise ConfigurationError(f"{source_label}: `{key}` must be a list of paths.")
        paths: list[Path] = []
        for index, item in enumerate(raw):
            text = normalize_optional_string(item)
            if text is None:
                raise ConfigurationError(f"{source_label}: `{key}[{index}]` is empty.")
            paths.append(Path(text))
        return tuple(paths)

    @staticmethod
    def _env_positive_int(env_map: Mapping[str, str], key: str, default: int) -> int:
        """Read a positive integer environment value, falling back when blank."""

        raw = normalize_optional_string(env_map.get(key))
        if raw is None:
            return default
        return parse_positive_int(raw, key)

    @staticmethod
    def _env_boolean(env_map: Mapping[str, str], key: str, default: bool) -> bool:
        """Read a boolean environment value, falling back when blank."""

        raw = normalize_optional_string(env_map.get(key))
        if raw is None:
            return default
        return parse_required_boolean(raw, key)
