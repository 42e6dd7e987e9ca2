"""Command-line interface for audioflow.

Responsibilities:
- Run file-mode operations described by a YAML config.
- Print the ffmpeg command line an operation resolves to without running it.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import echo_command_line, echo_run_summary, exit_with_command_error
from .config import ConfigLoader, EngineSettings
from .engine import AudioEngine, EngineMode
from .errors import ConfigurationError
from .models import OperationDescriptor, Slot, topology_for
from .runtime_tools import FFMPEG_COMMAND, resolve_executable
from .telemetry.logger import configure_logging
from .transcode.builder import ChannelEndpoints, build_arguments

app = typer.Typer(
    name="audioflow",
    no_args_is_help=True,
    help="Declarative audio convert/split/merge on top of ffmpeg.",
)

# First descriptor a freshly spawned child receives after stdin/stdout/stderr.
_PREVIEW_EXTRA_FD = 3


def _load_descriptor(config_path: Path) -> OperationDescriptor:
    """Load a YAML descriptor and map failures to configuration errors."""

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Config file not found: `{config_path}`.",
            hint="Provide an existing YAML descriptor path.",
        ) from exc
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read config file `{config_path}`: {exc}",
            hint="Verify file permissions.",
        ) from exc


def _preview_endpoints(descriptor: OperationDescriptor, stream: bool) -> ChannelEndpoints:
    """Endpoint names for a command preview; extra pipes use their nominal descriptor."""

    if not stream:
        if not descriptor.is_file_mode:
            raise ConfigurationError(
                "file-mode preview requires `input_files` and `output_files`.",
                hint="Add the paths to the config or pass `--stream`.",
            )
        return ChannelEndpoints(
            inputs=tuple(str(path) for path in descriptor.input_paths),
            outputs=tuple(str(path) for path in descriptor.output_paths),
        )

    topology = topology_for(descriptor.operation)
    names = {Slot.STDIN: "pipe:0", Slot.STDOUT: "pipe:1", Slot.EXTRA: f"pipe:{_PREVIEW_EXTRA_FD}"}
    return ChannelEndpoints(
        inputs=tuple(names[route.slot] for route in topology.inputs),
        outputs=tuple(names[route.slot] for route in topology.outputs),
    )


@app.command("run")
def run_command(
    config_file: Annotated[Path, typer.Argument(help="Path to YAML operation descriptor.")],
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.001, help="Cancel the run after this many seconds."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Print engine lifecycle log lines to stderr."),
    ] = False,
) -> None:
    """Run a file-mode operation."""

    if verbose:
        configure_logging(sys.stderr, level="DEBUG")
    try:
        descriptor = _load_descriptor(config_file)
        settings = ConfigLoader.settings_from_env()
        with AudioEngine(EngineMode.FILE, descriptor, settings=settings) as engine:
            engine.start(timeout=timeout)
            engine.wait()
            effective = engine.transcoder.descriptor
            returncode = engine.transcoder.returncode
    except Exception as exc:
        exit_with_command_error("run", exc)

    echo_run_summary(effective, returncode)


@app.command("args")
def args_command(
    config_file: Annotated[Path, typer.Argument(help="Path to YAML operation descriptor.")],
    stream: Annotated[
        bool,
        typer.Option("--stream", help="Preview the stream-mode command line (pipe endpoints)."),
    ] = False,
) -> None:
    """Print the ffmpeg command line without running it."""

    try:
        descriptor = _load_descriptor(config_file).apply_defaults()
        descriptor.validate()
        settings: EngineSettings = ConfigLoader.settings_from_env()
        settings.validate()
        endpoints = _preview_endpoints(descriptor, stream)
        arguments = build_arguments(descriptor, endpoints, settings)
    except Exception as exc:
        exit_with_command_error("args", exc)

    executable = settings.executable or resolve_executable() or FFMPEG_COMMAND
    echo_command_line([executable, *arguments])


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
