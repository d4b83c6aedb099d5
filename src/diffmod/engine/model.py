"""Structural representation of a multi-file unified diff.

Every value here is immutable and refers to content only through
:class:`~diffmod.engine.buffer.Range` handles, so diffs can be copied and
compared freely as long as the owning buffer is alive.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from diffmod.config import DiffOptions
from diffmod.engine.buffer import Buffer, Range
from diffmod.engine.names import FileName

if TYPE_CHECKING:
    from diffmod.engine.render import DiffWriter


class LineTag(str, Enum):
    CONTEXT = " "
    ADDED = "+"
    REMOVED = "-"

    @property
    def covers_old(self) -> bool:
        return self is not LineTag.ADDED

    @property
    def covers_new(self) -> bool:
        return self is not LineTag.REMOVED

    @property
    def marker(self) -> bytes:
        return self.value.encode()

    def reversed(self) -> LineTag:
        if self is LineTag.ADDED:
            return LineTag.REMOVED
        if self is LineTag.REMOVED:
            return LineTag.ADDED
        return self


@dataclass(frozen=True, slots=True)
class Line:
    """One diff line; ``text`` excludes the marker and the line terminator."""

    tag: LineTag
    text: Range
    no_newline: bool = False

    def with_tag(self, tag: LineTag) -> Line:
        return Line(tag, self.text, self.no_newline)


@dataclass(frozen=True, slots=True)
class Hunk:
    """A contiguous change region with unified-diff header numbers."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[Line, ...]
    section: Range | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        old = sum(1 for line in self.lines if line.tag.covers_old)
        new = sum(1 for line in self.lines if line.tag.covers_new)
        if old != self.old_count or new != self.new_count:
            raise ValueError(
                f"hunk -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} "
                f"holds {old} old and {new} new lines"
            )
        if min(self.old_start, self.old_count, self.new_start, self.new_count) < 0:
            raise ValueError("hunk numbers must be non-negative")

    @classmethod
    def from_lines(
        cls,
        old_pos: int,
        new_pos: int,
        lines: Sequence[Line],
        section: Range | None = None,
    ) -> Hunk:
        """Build a hunk starting at 0-based positions, deriving the counts."""

        old_count = sum(1 for line in lines if line.tag.covers_old)
        new_count = sum(1 for line in lines if line.tag.covers_new)
        return cls(
            old_start=old_pos + 1 if old_count else old_pos,
            old_count=old_count,
            new_start=new_pos + 1 if new_count else new_pos,
            new_count=new_count,
            lines=tuple(lines),
            section=section,
        )

    @property
    def old_pos(self) -> int:
        return self.old_start - 1 if self.old_count else self.old_start

    @property
    def new_pos(self) -> int:
        return self.new_start - 1 if self.new_count else self.new_start

    @property
    def old_end(self) -> int:
        return self.old_pos + self.old_count

    @property
    def new_end(self) -> int:
        return self.new_pos + self.new_count

    @property
    def delta(self) -> int:
        return self.new_count - self.old_count

    @property
    def has_changes(self) -> bool:
        return any(line.tag is not LineTag.CONTEXT for line in self.lines)


@dataclass(frozen=True, slots=True)
class File:
    """One file's diff: names, hunks, and git metadata."""

    old_name: FileName
    new_name: FileName
    hunks: tuple[Hunk, ...] = ()
    old_path: Range | None = None
    new_path: Range | None = None
    git_header: Range | None = None
    binary: bool = False
    old_mode: str | None = None
    new_mode: str | None = None
    similarity: int | None = None
    dissimilarity: int | None = None
    old_index: str | None = None
    new_index: str | None = None
    index_mode: str | None = None

    def __post_init__(self) -> None:
        if self.old_name.is_missing and self.new_name.is_missing:
            raise ValueError("a file diff needs at least one existing side")
        previous: Hunk | None = None
        for hunk in self.hunks:
            if previous is not None and (hunk.old_pos < previous.old_end or hunk.new_pos < previous.new_end):
                raise ValueError(
                    f"hunk at -{hunk.old_start} +{hunk.new_start} overlaps or precedes the previous hunk"
                )
            previous = hunk

    @property
    def key(self) -> tuple[FileName, FileName]:
        return (self.old_name, self.new_name)

    @property
    def is_added(self) -> bool:
        return self.old_name.is_missing

    @property
    def is_deleted(self) -> bool:
        return self.new_name.is_missing

    @property
    def is_renamed(self) -> bool:
        return not self.is_added and not self.is_deleted and self.old_name != self.new_name

    @property
    def is_metadata_only(self) -> bool:
        return not self.hunks and not self.binary

    @property
    def has_mode_change(self) -> bool:
        return self.old_mode is not None and self.new_mode is not None and self.old_mode != self.new_mode

    @property
    def display_name(self) -> str:
        return (self.old_name if self.new_name.is_missing else self.new_name).display()

    @property
    def old_missing_newline(self) -> bool:
        return self._missing_newline(old=True)

    @property
    def new_missing_newline(self) -> bool:
        return self._missing_newline(old=False)

    def _missing_newline(self, *, old: bool) -> bool:
        for hunk in reversed(self.hunks):
            for line in reversed(hunk.lines):
                covers = line.tag.covers_old if old else line.tag.covers_new
                if covers:
                    return line.no_newline
        return False


@dataclass(frozen=True, slots=True)
class Diff:
    """An ordered sequence of file diffs plus the options that produced them."""

    files: tuple[File, ...] = ()
    options: DiffOptions = field(default_factory=DiffOptions)

    def __iter__(self) -> Iterator[File]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def find_by_old_name(self, name: FileName) -> File | None:
        for file in self.files:
            if file.old_name == name:
                return file
        return None

    def find_by_new_name(self, name: FileName) -> File | None:
        for file in self.files:
            if file.new_name == name:
                return file
        return None

    def render(self, writer: DiffWriter, buffer: Buffer) -> None:
        from diffmod.engine.render import render_diff

        render_diff(self, writer, buffer)

    def to_bytes(self, buffer: Buffer) -> bytes:
        from diffmod.engine.render import render_bytes

        return render_bytes(self, buffer)


class DiffBuilder:
    """Collects files one at a time and produces an immutable :class:`Diff`."""

    def __init__(self, options: DiffOptions | None = None) -> None:
        self.options = options or DiffOptions()
        self._files: list[File] = []

    def add_file(self, file: File) -> DiffBuilder:
        self._files.append(file)
        return self

    def extend(self, files: Iterable[File]) -> DiffBuilder:
        self._files.extend(files)
        return self

    def build(self) -> Diff:
        return Diff(files=tuple(self._files), options=self.options)


def file_signature(file: File, buffer: Buffer) -> tuple[object, ...]:
    """Content-level identity of a file diff, independent of where its bytes live."""

    hunks = tuple(
        (
            hunk.old_start,
            hunk.old_count,
            hunk.new_start,
            hunk.new_count,
            tuple((line.tag, buffer.slice(line.text), line.no_newline) for line in hunk.lines),
        )
        for hunk in file.hunks
    )
    return (
        file.old_name,
        file.new_name,
        hunks,
        file.binary,
        file.old_mode,
        file.new_mode,
        file.similarity,
        file.dissimilarity,
        file.old_index,
        file.new_index,
        file.index_mode,
    )


def same_diff(first: Diff, second: Diff, buffer: Buffer) -> bool:
    """Structural equality ignoring cosmetic header text."""

    if len(first.files) != len(second.files):
        return False
    return all(
        file_signature(a, buffer) == file_signature(b, buffer) for a, b in zip(first.files, second.files)
    )


__all__ = [
    "LineTag",
    "Line",
    "Hunk",
    "File",
    "Diff",
    "DiffBuilder",
    "file_signature",
    "same_diff",
]
