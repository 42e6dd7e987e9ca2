"""Format tags, operation kinds and merge policies understood by the engine."""

from __future__ import annotations

from enum import Enum


class AudioFormat(str, Enum):
    """ffmpeg format tags accepted for inputs and outputs."""

    ALAW = "alaw"
    F32BE = "f32be"
    F32LE = "f32le"
    F64BE = "f64be"
    F64LE = "f64le"
    MULAW = "mulaw"
    S16BE = "s16be"
    S16LE = "s16le"
    S24BE = "s24be"
    S24LE = "s24le"
    S32BE = "s32be"
    S32LE = "s32le"
    S8 = "s8"
    U16BE = "u16be"
    U16LE = "u16le"
    U24BE = "u24be"
    U24LE = "u24le"
    U32BE = "u32be"
    U32LE = "u32le"
    U8 = "u8"
    WAV = "wav"
    MP3 = "mp3"
    G722 = "g722"
    G729 = "bit"
    OPUS = "opus"
    AAC = "aac"
    GSM = "gsm"

    @property
    def is_raw(self) -> bool:
        """Return whether ffmpeg needs explicit rate/channels to read this format."""

        return self not in _CONTAINER_FORMATS


_CONTAINER_FORMATS = frozenset(
    {
        AudioFormat.WAV,
        AudioFormat.MP3,
        AudioFormat.G722,
        AudioFormat.G729,
        AudioFormat.OPUS,
        AudioFormat.AAC,
    }
)


class OperationType(str, Enum):
    """Supported transformation kinds."""

    CONVERT = "convert"
    SPLIT = "split"
    MERGE = "merge"


class MergePolicy(str, Enum):
    """How two merge inputs are combined."""

    MIX = "mix"
    SIDE_BY_SIDE = "side_by_side"

