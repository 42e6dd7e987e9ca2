"""Top-level package for audioflow.

This package wraps ffmpeg as a declarative audio convert/split/merge engine over live
pipes or disk files. The main entry point is `AudioEngine`.
"""

from loguru import logger

from .engine import AudioEngine, EngineMode
from .models import AudioFormat, ChannelSpec, MergePolicy, OperationDescriptor, OperationType

logger.disable("audioflow")

__all__ = [
    "AudioEngine",
    "AudioFormat",
    "ChannelSpec",
    "EngineMode",
    "MergePolicy",
    "OperationDescriptor",
    "OperationType",
    "__version__",
]

__version__ = "0.1.0"
