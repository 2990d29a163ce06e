"""Helpers for reading a declared number of bytes from binary streams."""

from __future__ import annotations

from collections.abc import Iterator
from typing import BinaryIO

from s3lite.core.exceptions import IncompleteReadError

_READ_BLOCK_SIZE = 64 * 1024


def readinto_exactly(stream: BinaryIO, view: memoryview) -> int:
    """Fill ``view`` completely from ``stream``.

    Short reads are retried until the view is full.

    Args:
        stream: Binary source to read from.
        view: Writable view to fill.

    Returns:
        Number of bytes read, always ``len(view)``.

    Raises:
        IncompleteReadError: If the stream is exhausted first.
    """
    filled = 0
    target = len(view)
    while filled < target:
        readinto = getattr(stream, "readinto", None)
        if readinto is not None:
            count = readinto(view[filled:])
        else:
            data = stream.read(target - filled)
            count = len(data)
            view[filled : filled + count] = data
        if not count:
            raise IncompleteReadError(expected=target, received=filled)
        filled += count
    return filled


class BoundedReader:
    """File-like wrapper exposing exactly ``size`` bytes of a stream.

    ``requests`` uses ``len()`` on the wrapper to set ``Content-Length`` and
    streams the body through ``read()`` without buffering it in memory.
    """

    def __init__(self, stream: BinaryIO, size: int):
        self._stream = stream
        self._size = size
        self._remaining = size

    def __len__(self) -> int:
        return self._size

    def read(self, amt: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if amt is None or amt < 0 or amt > self._remaining:
            amt = self._remaining
        data = self._stream.read(amt)
        if not data:
            raise IncompleteReadError(
                expected=self._size, received=self._size - self._remaining
            )
        self._remaining -= len(data)
        return data

    def __iter__(self) -> Iterator[bytes]:
        while True:
            block = self.read(_READ_BLOCK_SIZE)
            if not block:
                return
            yield block
