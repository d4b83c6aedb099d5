"""Append-only byte arena holding all diff text.

Structural types (lines, hunks, file paths) never own bytes; they hold
:class:`Range` handles into one shared :class:`Buffer`.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import NamedTuple


class Range(NamedTuple):
    """A span of bytes in a :class:`Buffer`."""

    start: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.start + self.length

    def sub(self, begin: int, end: int | None = None) -> Range:
        """Return the sub-range ``[begin, end)`` relative to this range, clamped."""

        stop = self.length if end is None else min(end, self.length)
        begin = min(max(begin, 0), stop)
        return Range(self.start + begin, stop - begin)


class Buffer:
    """Owner of all diff contents.

    Content is only ever appended; a Range returned by :meth:`insert` stays
    valid and keeps pointing at the same bytes for the lifetime of the buffer.
    """

    def __init__(self) -> None:
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

    def insert(self, data: bytes) -> Range:
        start = len(self._data)
        self._data.extend(data)
        return Range(start, len(data))

    def slice(self, span: Range) -> bytes:
        if span.start < 0 or span.length < 0 or span.end > len(self._data):
            raise IndexError(f"range {tuple(span)} outside buffer of {len(self._data)} bytes")
        return bytes(self._data[span.start : span.end])

    def contains_zero(self, span: Range) -> bool:
        return self._data.find(0, span.start, span.end) != -1

    def lines(self, span: Range) -> Iterator[tuple[Range, bool]]:
        """Iterate over ``(line, terminated)`` pairs in ``span``.

        Line ranges exclude the ``\\n``; ``terminated`` is False only for a
        final line that has no newline.
        """

        data = self._data
        pos = span.start
        end = span.end
        while pos < end:
            newline = data.find(b"\n", pos, end)
            if newline == -1:
                yield Range(pos, end - pos), False
                return
            yield Range(pos, newline - pos), True
            pos = newline + 1


__all__ = ["Buffer", "Range"]
