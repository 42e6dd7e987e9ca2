"""CLI output and error rendering helpers."""

from __future__ import annotations

import shlex
from typing import NoReturn

import typer

from .errors import TranscodeError
from .models import OperationDescriptor


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, TranscodeError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_command_line(command: list[str]) -> None:
    """Print one shell-quoted command line."""

    typer.echo(shlex.join(command))


def echo_run_summary(descriptor: OperationDescriptor, returncode: int | None) -> None:
    """Print the operation and the files it produced."""

    typer.echo(f"Operation: {descriptor.operation.value}")
    for index, path in enumerate(descriptor.output_paths):
        typer.echo(f"Output {index}: {path}")
    typer.echo(f"Exit status: {returncode}")

