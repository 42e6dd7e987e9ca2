"""Logical channel topology per operation.

The table below is the single mapping from logical channels to process descriptor
slots. Argument building and pipe wiring both read it, so the order in which extra
pipes are attached to ffmpeg always matches the endpoints named in its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .formats import OperationType


class Slot(str, Enum):
    """Process descriptor slot carrying one logical channel."""

    STDIN = "stdin"
    STDOUT = "stdout"
    EXTRA = "extra"


@dataclass(frozen=True, slots=True)
class ChannelRoute:
    """One logical channel: its role name and the slot that carries it."""

    role: str
    slot: Slot


@dataclass(frozen=True, slots=True)
class ChannelTopology:
    """Ordered input and output routes of one operation.

    Attributes:
        inputs: Input routes by logical index.
        outputs: Output routes by logical index.
    """

    inputs: tuple[ChannelRoute, ...]
    outputs: tuple[ChannelRoute, ...]

    @property
    def extra_routes(self) -> tuple[tuple[str, int, ChannelRoute], ...]:
        """Return `(direction, logical_index, route)` for extra slots in attachment order.

        Inputs are attached before outputs; within a direction, logical order wins.
        """

        routes: list[tuple[str, int, ChannelRoute]] = []
        for index, route in enumerate(self.inputs):
            if route.slot is Slot.EXTRA:
                routes.append(("input", index, route))
        for index, route in enumerate(self.outputs):
            if route.slot is Slot.EXTRA:
                routes.append(("output", index, route))
        return tuple(routes)


CHANNEL_TOPOLOGIES: Mapping[OperationType, ChannelTopology] = MappingProxyType(
    {
        OperationType.CONVERT: ChannelTopology(
            inputs=(ChannelRoute("primary", Slot.STDIN),),
            outputs=(ChannelRoute("primary", Slot.STDOUT),),
        ),
        OperationType.SPLIT: ChannelTopology(
            inputs=(ChannelRoute("primary", Slot.STDIN),),
            outputs=(
                ChannelRoute("left", Slot.STDOUT),
                ChannelRoute("right", Slot.EXTRA),
            ),
        ),
        OperationType.MERGE: ChannelTopology(
            inputs=(
                ChannelRoute("primary", Slot.STDIN),
                ChannelRoute("secondary", Slot.EXTRA),
            ),
            outputs=(ChannelRoute("mixed", Slot.STDOUT),),
        ),
    }
)


def topology_for(operation: OperationType) -> ChannelTopology:
    """Return the channel topology of an operation."""

    return CHANNEL_TOPOLOGIES[operation]
