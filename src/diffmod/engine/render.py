"""Rendering of diffs through pluggable writers.

The traversal (files, then hunks, then lines) lives in :func:`render_diff`;
writers only decide what to do with each piece. :class:`ByteWriter` builds
canonical unified diff bytes, :class:`StyledWriter` keeps a per-line style so
the same output can be shown in color with ``rich``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

from rich.text import Text

from diffmod.engine.buffer import Buffer
from diffmod.engine.model import Diff, File, Hunk, LineTag
from diffmod.engine.names import DEV_NULL, FileName, quote_path

NO_NEWLINE_MARKER = b"\\ No newline at end of file"


class DiffWriter(ABC):
    """Receiver of a diff traversal."""

    @abstractmethod
    def begin_file(self, header_lines: Sequence[bytes]) -> None: ...

    @abstractmethod
    def begin_hunk(self, header: bytes) -> None: ...

    @abstractmethod
    def emit_line(self, tag: LineTag, content: bytes) -> None: ...

    @abstractmethod
    def no_newline(self) -> None: ...

    def end_file(self) -> None:
        return None


class ByteWriter(DiffWriter):
    def __init__(self) -> None:
        self._out = bytearray()

    def begin_file(self, header_lines: Sequence[bytes]) -> None:
        for line in header_lines:
            self._out += line + b"\n"

    def begin_hunk(self, header: bytes) -> None:
        self._out += header + b"\n"

    def emit_line(self, tag: LineTag, content: bytes) -> None:
        self._out += tag.marker + content + b"\n"

    def no_newline(self) -> None:
        self._out += NO_NEWLINE_MARKER + b"\n"

    def getvalue(self) -> bytes:
        return bytes(self._out)


class LineStyle(str, Enum):
    FILE_HEADER = "file_header"
    HUNK_HEADER = "hunk_header"
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"
    MARKER = "marker"


STYLES: dict[LineStyle, str] = {
    LineStyle.FILE_HEADER: "bold",
    LineStyle.HUNK_HEADER: "cyan",
    LineStyle.CONTEXT: "",
    LineStyle.ADDED: "green",
    LineStyle.REMOVED: "red",
    LineStyle.MARKER: "dim",
}

_TAG_STYLES = {
    LineTag.CONTEXT: LineStyle.CONTEXT,
    LineTag.ADDED: LineStyle.ADDED,
    LineTag.REMOVED: LineStyle.REMOVED,
}


class StyledWriter(DiffWriter):
    """Records ``(style, bytes)`` rows; :meth:`to_text` turns them into rich text."""

    def __init__(self) -> None:
        self.rows: list[tuple[LineStyle, bytes]] = []

    def begin_file(self, header_lines: Sequence[bytes]) -> None:
        self.rows.extend((LineStyle.FILE_HEADER, line) for line in header_lines)

    def begin_hunk(self, header: bytes) -> None:
        self.rows.append((LineStyle.HUNK_HEADER, header))

    def emit_line(self, tag: LineTag, content: bytes) -> None:
        self.rows.append((_TAG_STYLES[tag], tag.marker + content))

    def no_newline(self) -> None:
        self.rows.append((LineStyle.MARKER, NO_NEWLINE_MARKER))

    def to_bytes(self) -> bytes:
        return b"".join(row + b"\n" for _, row in self.rows)

    def to_text(self) -> Text:
        text = Text()
        for style, row in self.rows:
            text.append(row.decode("utf-8", errors="replace") + "\n", style=STYLES[style])
        return text


def render_diff(diff: Diff, writer: DiffWriter, buffer: Buffer) -> None:
    """Walk ``diff`` and feed every file, hunk and line to ``writer``."""

    strip = diff.options.strip_path_components
    for file in diff.files:
        writer.begin_file(file_header(file, buffer, strip))
        for hunk in file.hunks:
            writer.begin_hunk(hunk_header(hunk, buffer))
            for line in hunk.lines:
                writer.emit_line(line.tag, buffer.slice(line.text))
                if line.no_newline:
                    writer.no_newline()
        writer.end_file()


def render_bytes(diff: Diff, buffer: Buffer) -> bytes:
    writer = ByteWriter()
    render_diff(diff, writer, buffer)
    return writer.getvalue()


def render_styled(diff: Diff, buffer: Buffer) -> Text:
    writer = StyledWriter()
    render_diff(diff, writer, buffer)
    return writer.to_text()


def hunk_header(hunk: Hunk, buffer: Buffer) -> bytes:
    header = b"@@ -%d,%d +%d,%d @@" % (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count)
    if hunk.section is not None:
        header += buffer.slice(hunk.section)
    return header


def file_header(file: File, buffer: Buffer, strip: int) -> list[bytes]:
    """Header lines of a file diff, in the order git writes them."""

    old_prefix = b"a/" * strip
    new_prefix = b"b/" * strip
    lines: list[bytes] = []

    git = file.git_header is not None or _needs_git_header(file)
    if git:
        if file.git_header is not None:
            lines.append(b"diff --git " + buffer.slice(file.git_header))
        else:
            old = file.old_name if not file.old_name.is_missing else file.new_name
            new = file.new_name if not file.new_name.is_missing else file.old_name
            lines.append(
                b"diff --git " + _prefixed(old, old_prefix) + b" " + _prefixed(new, new_prefix)
            )
        lines.extend(_extended_headers(file, old_prefix, new_prefix))

    if file.hunks or not git:
        lines.append(b"--- " + _side_path(file, buffer, old=True, prefix=old_prefix))
        lines.append(b"+++ " + _side_path(file, buffer, old=False, prefix=new_prefix))
    return lines


def _needs_git_header(file: File) -> bool:
    return (
        file.binary
        or file.is_renamed
        or file.old_mode is not None
        or file.new_mode is not None
        or file.similarity is not None
        or file.dissimilarity is not None
        or file.old_index is not None
    )


def _extended_headers(file: File, old_prefix: bytes, new_prefix: bytes) -> list[bytes]:
    lines: list[bytes] = []
    if file.is_added:
        if file.new_mode is not None:
            lines.append(b"new file mode " + file.new_mode.encode())
    elif file.is_deleted:
        if file.old_mode is not None:
            lines.append(b"deleted file mode " + file.old_mode.encode())
    else:
        if file.old_mode is not None:
            lines.append(b"old mode " + file.old_mode.encode())
        if file.new_mode is not None:
            lines.append(b"new mode " + file.new_mode.encode())
    if file.similarity is not None:
        lines.append(b"similarity index %d%%" % file.similarity)
    if file.dissimilarity is not None:
        lines.append(b"dissimilarity index %d%%" % file.dissimilarity)
    if file.is_renamed:
        lines.append(b"rename from " + quote_path(_path(file.old_name)))
        lines.append(b"rename to " + quote_path(_path(file.new_name)))
    if file.old_index is not None and file.new_index is not None:
        index = b"index " + file.old_index.encode() + b".." + file.new_index.encode()
        if file.index_mode is not None:
            index += b" " + file.index_mode.encode()
        lines.append(index)
    if file.binary and not file.hunks:
        lines.append(
            b"Binary files "
            + _prefixed(file.old_name, old_prefix)
            + b" and "
            + _prefixed(file.new_name, new_prefix)
            + b" differ"
        )
    return lines


def _side_path(file: File, buffer: Buffer, *, old: bool, prefix: bytes) -> bytes:
    raw = file.old_path if old else file.new_path
    if raw is not None:
        return buffer.slice(raw)
    return _prefixed(file.old_name if old else file.new_name, prefix)


def _prefixed(name: FileName, prefix: bytes) -> bytes:
    if name.is_missing:
        return DEV_NULL
    return quote_path(prefix + _path(name))


def _path(name: FileName) -> bytes:
    assert name.path is not None
    return name.path


__all__ = [
    "DiffWriter",
    "ByteWriter",
    "StyledWriter",
    "LineStyle",
    "STYLES",
    "NO_NEWLINE_MARKER",
    "render_diff",
    "render_bytes",
    "render_styled",
    "file_header",
    "hunk_header",
]
