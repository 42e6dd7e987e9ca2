"""Bounded capture of ffmpeg diagnostic output."""

from __future__ import annotations


class TailBuffer:
    """Fixed-capacity byte buffer that keeps only the most recent bytes.

    Only the stderr pump writes to it, and it is read after the process exits, so it
    carries no lock.
    """

    def __init__(self, limit: int = 2048) -> None:
        if limit <= 0:
            raise ValueError("`limit` must be a positive integer.")
        self._limit = limit
        self._data = bytearray()

    @property
    def limit(self) -> int:
        """Maximum number of bytes retained."""

        return self._limit

    def write(self, chunk: bytes) -> int:
        """Append bytes, evicting the oldest ones beyond the limit."""

        if len(chunk) >= self._limit:
            self._data[:] = chunk[-self._limit :]
            return len(chunk)
        self._data.extend(chunk)
        overflow = len(self._data) - self._limit
        if overflow > 0:
            del self._data[:overflow]
        return len(chunk)

    def getvalue(self) -> bytes:
        """Return a snapshot of the retained bytes."""

        return bytes(self._data)

    def text(self) -> str:
        """Return the retained bytes decoded for error messages."""

        return self._data.decode("utf-8", errors="replace").strip()

    def __len__(self) -> int:
        return len(self._data)
