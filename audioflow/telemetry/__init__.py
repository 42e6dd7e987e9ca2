"""Telemetry helpers.

This package emits deterministic lifecycle logs for transcoder runs.
"""

from .logger import EngineLogger, configure_logging

__all__ = ["EngineLogger", "configure_logging"]
