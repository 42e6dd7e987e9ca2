"""Descriptor models shared by the transcoding engine, config loader and CLI."""

from .descriptor import ChannelSpec, OperationDescriptor
from .formats import AudioFormat, MergePolicy, OperationType
from .topology import CHANNEL_TOPOLOGIES, ChannelRoute, ChannelTopology, Slot, topology_for

__all__ = [
    "AudioFormat",
    "CHANNEL_TOPOLOGIES",
    "ChannelRoute",
    "ChannelSpec",
    "ChannelTopology",
    "MergePolicy",
    "OperationDescriptor",
    "OperationType",
    "Slot",
    "topology_for",
]
