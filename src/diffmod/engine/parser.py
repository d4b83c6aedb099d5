"""Unified diff parsing (plain ``---``/``+++`` sections and git extended headers)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from diffmod.config import DiffOptions
from diffmod.engine.buffer import Buffer, Range
from diffmod.engine.hunks import change_runs
from diffmod.engine.model import Diff, DiffBuilder, File, Hunk, Line, LineTag
from diffmod.engine.names import FileName, header_path, quoted_end, unquote_path
from diffmod.errors import DiffModError, MalformedPath, ParseError

logger = logging.getLogger(__name__)

GIT_PREFIX = b"diff --git "

_HUNK_HEADER = re.compile(rb"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$", re.DOTALL)
_SIMILARITY = re.compile(rb"^(\d+)%$")
_INDEX = re.compile(rb"^([0-9a-fA-F]+)\.\.([0-9a-fA-F]+)(?: ([0-7]+))?$")

_UNSUPPORTED = (b"copy from ", b"copy to ", b"GIT binary patch")


@dataclass(slots=True)
class _Header:
    """Extended header values collected for one git section."""

    git_header: Range | None = None
    old_mode: str | None = None
    new_mode: str | None = None
    added: bool = False
    deleted: bool = False
    similarity: int | None = None
    dissimilarity: int | None = None
    rename_from: bytes | None = None
    rename_to: bytes | None = None
    old_index: str | None = None
    new_index: str | None = None
    index_mode: str | None = None
    binary: bool = False


def parse(buffer: Buffer, span: Range | None = None, options: DiffOptions | None = None) -> Diff:
    """Parse unified diff text held in ``buffer`` at ``span``.

    The returned diff records the largest run of context lines seen in the
    input as its ``context_lines`` so that regrouping its hunks keeps them
    intact.
    """

    options = options or DiffOptions()
    if span is None:
        span = Range(0, len(buffer))
    parser = _Parser(buffer, list(buffer.lines(span)), options)
    files = parser.run()

    context = _observed_context(files)
    if context is not None:
        options = options.model_copy(update={"context_lines": context})
    logger.debug("parsed %d files from %d bytes", len(files), span.length)
    return DiffBuilder(options).extend(files).build()


class _Parser:
    def __init__(self, buffer: Buffer, rows: list[tuple[Range, bool]], options: DiffOptions) -> None:
        self.buffer = buffer
        self.rows = rows
        self.strip = options.strip_path_components
        self.idx = 0
        self._current: str | None = None

    def run(self) -> list[File]:
        files: list[File] = []
        while self.idx < len(self.rows):
            text = self._text(self.idx)
            if text.startswith(GIT_PREFIX):
                files.append(self._section(git=True))
            elif text.startswith(b"--- ") and self._next_is_new_header():
                files.append(self._section(git=False))
            else:
                self.idx += 1
        return files

    def _text(self, idx: int) -> bytes:
        return self.buffer.slice(self.rows[idx][0])

    def _next_is_new_header(self) -> bool:
        return self.idx + 1 < len(self.rows) and self._text(self.idx + 1).startswith(b"+++ ")

    def _section(self, *, git: bool) -> File:
        self._current = None
        try:
            return self._parse_section(git=git)
        except DiffModError as exc:
            wrapped = exc.with_context(f"line {min(self.idx + 1, len(self.rows))}")
            if self._current is not None:
                wrapped = wrapped.with_context(self._current)
            raise wrapped from exc

    def _parse_section(self, *, git: bool) -> File:
        header = _Header()
        git_names: tuple[FileName, FileName] | None = None
        if git:
            row = self.rows[self.idx][0]
            header.git_header = row.sub(len(GIT_PREFIX))
            git_names = self._git_names(self.buffer.slice(header.git_header))
            if git_names is not None:
                self._current = _shown(*git_names)
            self.idx += 1
            self._extended_headers(header)

        old_path: Range | None = None
        new_path: Range | None = None
        hunks: tuple[Hunk, ...] = ()
        if self.idx < len(self.rows) and self._text(self.idx).startswith(b"--- "):
            if not self._next_is_new_header():
                raise ParseError("'---' line is not followed by a '+++' line")
            old_path = self.rows[self.idx][0].sub(4)
            new_path = self.rows[self.idx + 1][0].sub(4)
            old_name = FileName.from_bytes(header_path(self.buffer.slice(old_path)), self.strip)
            new_name = FileName.from_bytes(header_path(self.buffer.slice(new_path)), self.strip)
            self._current = _shown(old_name, new_name)
            self.idx += 2
            hunks = self._hunks()
        elif header.rename_from is not None or header.rename_to is not None:
            if header.rename_from is None or header.rename_to is None:
                raise ParseError("rename header without both 'rename from' and 'rename to'")
            old_name = FileName.named(header.rename_from)
            new_name = FileName.named(header.rename_to)
        elif git_names is not None:
            old_name, new_name = git_names
        else:
            payload = _decode(self._git_payload(header))
            raise ParseError(f"cannot determine file names from diff header: {payload}")

        if header.added:
            old_name = FileName.MISSING
        if header.deleted:
            new_name = FileName.MISSING

        try:
            return File(
                old_name=old_name,
                new_name=new_name,
                hunks=hunks,
                old_path=old_path,
                new_path=new_path,
                git_header=header.git_header,
                binary=header.binary,
                old_mode=header.old_mode,
                new_mode=header.new_mode,
                similarity=header.similarity,
                dissimilarity=header.dissimilarity,
                old_index=header.old_index,
                new_index=header.new_index,
                index_mode=header.index_mode,
            )
        except ValueError as exc:
            raise ParseError(str(exc)) from exc

    def _extended_headers(self, header: _Header) -> None:
        while self.idx < len(self.rows):
            text = self._text(self.idx).rstrip(b"\r")
            if text.startswith(_UNSUPPORTED):
                raise ParseError(f"unsupported diff extension: {_decode(text)}")
            if text.startswith(b"old mode "):
                header.old_mode = _decode(text[9:])
            elif text.startswith(b"new mode "):
                header.new_mode = _decode(text[9:])
            elif text.startswith(b"deleted file mode "):
                header.deleted = True
                header.old_mode = _decode(text[18:])
            elif text.startswith(b"new file mode "):
                header.added = True
                header.new_mode = _decode(text[14:])
            elif text.startswith(b"similarity index "):
                header.similarity = _percentage(text[17:])
            elif text.startswith(b"dissimilarity index "):
                header.dissimilarity = _percentage(text[20:])
            elif text.startswith(b"rename from "):
                header.rename_from = unquote_path(text[12:])
            elif text.startswith(b"rename to "):
                header.rename_to = unquote_path(text[10:])
            elif text.startswith(b"index "):
                match = _INDEX.match(text[6:])
                if match is None:
                    raise ParseError(f"invalid index line: {_decode(text)}")
                header.old_index = _decode(match.group(1))
                header.new_index = _decode(match.group(2))
                header.index_mode = _decode(match.group(3)) if match.group(3) else None
            elif text.startswith(b"Binary files ") and text.endswith(b" differ"):
                header.binary = True
            else:
                return
            self.idx += 1

    def _git_payload(self, header: _Header) -> bytes:
        return self.buffer.slice(header.git_header) if header.git_header is not None else b""

    def _git_names(self, payload: bytes) -> tuple[FileName, FileName] | None:
        payload = payload.rstrip(b"\r")
        if payload.startswith(b'"'):
            end = quoted_end(payload)
            if end == -1 or payload[end : end + 1] != b" ":
                raise ParseError(f"invalid quoted path in diff header: {_decode(payload)}")
            return (
                FileName.from_bytes(unquote_path(payload[:end]), self.strip),
                FileName.from_bytes(unquote_path(payload[end + 1 :]), self.strip),
            )
        if payload.endswith(b'"'):
            opening = payload.rfind(b' "')
            if opening == -1:
                raise ParseError(f"invalid quoted path in diff header: {_decode(payload)}")
            return (
                FileName.from_bytes(payload[:opening], self.strip),
                FileName.from_bytes(unquote_path(payload[opening + 1 :]), self.strip),
            )

        spaces = [idx for idx, byte in enumerate(payload) if byte == ord(" ")]
        for space in spaces:
            try:
                old = FileName.from_bytes(payload[:space], self.strip)
                new = FileName.from_bytes(payload[space + 1 :], self.strip)
            except MalformedPath:
                continue
            if old == new:
                return old, new
        if len(spaces) == 1:
            try:
                return (
                    FileName.from_bytes(payload[: spaces[0]], self.strip),
                    FileName.from_bytes(payload[spaces[0] + 1 :], self.strip),
                )
            except MalformedPath:
                return None
        return None

    def _hunks(self) -> tuple[Hunk, ...]:
        hunks: list[Hunk] = []
        while self.idx < len(self.rows) and self._text(self.idx).startswith(b"@@ "):
            hunk = self._hunk(len(hunks) + 1)
            if hunks and (hunk.old_pos < hunks[-1].old_end or hunk.new_pos < hunks[-1].new_end):
                raise ParseError(f"hunk {len(hunks) + 1} is out of order or overlaps the previous hunk")
            hunks.append(hunk)
        return tuple(hunks)

    def _hunk(self, number: int) -> Hunk:
        row = self.rows[self.idx][0]
        text = self.buffer.slice(row)
        match = _HUNK_HEADER.match(text)
        if match is None:
            raise ParseError(f"invalid hunk header: {_decode(text)}")
        old_start = int(match.group(1))
        old_count = int(match.group(2)) if match.group(2) is not None else 1
        new_start = int(match.group(3))
        new_count = int(match.group(4)) if match.group(4) is not None else 1
        if (old_start == 0 and old_count) or (new_start == 0 and new_count):
            raise ParseError(f"hunk {number} starts at line 0 but is not empty")
        section = row.sub(match.start(5)) if match.group(5) else None
        self.idx += 1

        lines: list[Line] = []
        old_left, new_left = old_count, new_count
        old_ended = new_ended = False
        unterminated = False
        while old_left or new_left:
            if self.idx >= len(self.rows):
                raise ParseError(
                    f"unexpected end of input in hunk {number}: "
                    f"{old_left} old and {new_left} new lines missing"
                )
            span, terminated = self.rows[self.idx]
            text = self.buffer.slice(span)
            if text.startswith(b"\\"):
                old_ended, new_ended = self._mark_no_newline(lines, old_ended, new_ended)
                unterminated = False
                self.idx += 1
                continue
            if unterminated:
                raise ParseError(f"hunk {number}: line without newline is not followed by a no-newline marker")
            if not text:
                tag, content = LineTag.CONTEXT, span
            else:
                try:
                    tag = LineTag(text[:1].decode("latin-1"))
                except ValueError:
                    raise ParseError(
                        f"hunk {number} interrupted: {old_left} old and {new_left} new lines missing"
                    ) from None
                content = span.sub(1)

            if (tag.covers_old and not old_left) or (tag.covers_new and not new_left):
                raise ParseError(f"hunk {number}: more lines than its header declares")
            if (tag.covers_old and old_ended) or (tag.covers_new and new_ended):
                raise ParseError(f"hunk {number}: line after the end of file marker")
            lines.append(Line(tag, content))
            old_left -= 1 if tag.covers_old else 0
            new_left -= 1 if tag.covers_new else 0
            unterminated = not terminated
            self.idx += 1

        if self.idx < len(self.rows) and self._text(self.idx).startswith(b"\\"):
            self._mark_no_newline(lines, old_ended, new_ended)
            unterminated = False
            self.idx += 1
        if unterminated:
            raise ParseError(f"hunk {number}: line without newline is not followed by a no-newline marker")

        return Hunk(old_start, old_count, new_start, new_count, tuple(lines), section)

    def _mark_no_newline(self, lines: list[Line], old_ended: bool, new_ended: bool) -> tuple[bool, bool]:
        if not lines or lines[-1].no_newline:
            raise ParseError("no-newline marker does not follow a hunk line")
        last = lines[-1]
        lines[-1] = Line(last.tag, last.text, True)
        return old_ended or last.tag.covers_old, new_ended or last.tag.covers_new


def _observed_context(files: list[File]) -> int | None:
    """Widest context before the first or after the last change of any hunk."""

    longest: int | None = None
    for file in files:
        for hunk in file.hunks:
            runs = change_runs(hunk.lines)
            if runs:
                edges = (runs[0][0], len(hunk.lines) - runs[-1][1])
            else:
                edges = (len(hunk.lines),)
            longest = max(longest or 0, *edges)
    return longest


def _percentage(raw: bytes) -> int:
    match = _SIMILARITY.match(raw)
    if match is None:
        raise ParseError(f"invalid similarity value: {_decode(raw)}")
    return int(match.group(1))


def _shown(old: FileName, new: FileName) -> str:
    return (old if new.is_missing else new).display()


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


__all__ = ["parse", "GIT_PREFIX"]
