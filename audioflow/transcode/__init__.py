"""ffmpeg-backed transcoders.

This package turns an `OperationDescriptor` into an ffmpeg invocation and multiplexes
its standard and extra descriptors into indexed logical channels.
"""

from .builder import ChannelEndpoints, FilterGraph, build_arguments, build_filter_graph
from .cancellation import CancellationToken
from .file import FileTranscoder
from .process import LifecycleState, ProcessController, Transcoder
from .stream import StreamTranscoder
from .tail import TailBuffer
from .wiring import ChannelWiring, ExtraPipe

__all__ = [
    "CancellationToken",
    "ChannelEndpoints",
    "ChannelWiring",
    "ExtraPipe",
    "FileTranscoder",
    "FilterGraph",
    "LifecycleState",
    "ProcessController",
    "StreamTranscoder",
    "TailBuffer",
    "Transcoder",
    "build_arguments",
    "build_filter_graph",
]
