"""File names as they appear on either side of a diff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from diffmod.errors import MalformedPath, ParseError

DEV_NULL = b"/dev/null"

_ESCAPES = {
    ord("a"): 0x07,
    ord("b"): 0x08,
    ord("f"): 0x0C,
    ord("n"): 0x0A,
    ord("r"): 0x0D,
    ord("t"): 0x09,
    ord("v"): 0x0B,
    ord("\\"): 0x5C,
    ord('"'): 0x22,
}
_QUOTES = {value: bytes((key,)) for key, value in _ESCAPES.items()}


@dataclass(frozen=True, slots=True)
class FileName:
    """Effective name of one side of a file diff.

    ``path`` is None when the file does not exist on that side.
    """

    path: bytes | None = None

    MISSING: ClassVar[FileName]

    @classmethod
    def named(cls, path: bytes) -> FileName:
        return cls(path)

    @classmethod
    def from_bytes(cls, raw: bytes, strip_path_components: int) -> FileName:
        """Build a name from a header path, dropping prefix components."""

        if raw == DEV_NULL:
            return cls.MISSING
        if not raw:
            raise MalformedPath("empty diff file path")

        path = raw[1:] if raw.startswith(b"/") else raw
        for _ in range(strip_path_components):
            slash = path.find(b"/")
            if slash == -1:
                raise MalformedPath(
                    f"{_display(raw)}: path does not have enough components to strip {strip_path_components}"
                )
            path = path[slash + 1 :]
        if not path:
            raise MalformedPath(f"{_display(raw)}: empty path after stripping")
        return cls(path)

    @property
    def is_missing(self) -> bool:
        return self.path is None

    def display(self) -> str:
        if self.path is None:
            return DEV_NULL.decode()
        return _display(self.path)

    def __str__(self) -> str:
        return self.display()


FileName.MISSING = FileName(None)


def _display(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def unquote_path(raw: bytes) -> bytes:
    """Decode a header path, undoing git's C-style quoting if present."""

    if len(raw) < 2 or not raw.startswith(b'"') or not raw.endswith(b'"'):
        return raw

    out = bytearray()
    body = raw[1:-1]
    idx = 0
    while idx < len(body):
        ch = body[idx]
        if ch != ord("\\"):
            out.append(ch)
            idx += 1
            continue
        if idx + 1 >= len(body):
            raise ParseError(f"dangling escape in quoted path {_display(raw)}")
        nxt = body[idx + 1]
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            idx += 2
        elif ord("0") <= nxt <= ord("7"):
            digits = body[idx + 1 : idx + 4]
            try:
                out.append(int(digits, 8))
            except ValueError as exc:
                raise ParseError(f"bad octal escape in quoted path {_display(raw)}") from exc
            idx += 4
        else:
            raise ParseError(f"unknown escape in quoted path {_display(raw)}")
    return bytes(out)


def quote_path(path: bytes) -> bytes:
    """Quote a path the way git does when it holds special bytes."""

    if not any(byte < 0x20 or byte in (0x22, 0x5C, 0x7F) for byte in path):
        return path
    out = bytearray(b'"')
    for byte in path:
        if byte in _QUOTES:
            out += b"\\" + _QUOTES[byte]
        elif byte < 0x20 or byte == 0x7F:
            out += b"\\%03o" % byte
        else:
            out.append(byte)
    out += b'"'
    return bytes(out)


def quoted_end(raw: bytes) -> int:
    """Index just past the closing quote of a quoted token at the start of ``raw``, or -1."""

    idx = 1
    while idx < len(raw):
        if raw[idx] == ord("\\"):
            idx += 2
            continue
        if raw[idx] == ord('"'):
            return idx + 1
        idx += 1
    return -1


def header_path(raw: bytes) -> bytes:
    """Extract the path from the payload of a ``---``/``+++`` line."""

    if raw.startswith(b'"'):
        end = quoted_end(raw)
        if end != -1:
            return unquote_path(raw[:end])
    tab = raw.find(b"\t")
    if tab != -1:
        raw = raw[:tab]
    return raw.rstrip(b"\r")


__all__ = ["FileName", "DEV_NULL", "unquote_path", "quote_path", "quoted_end", "header_path"]
