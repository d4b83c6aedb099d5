"""Grouping of tagged lines into hunks.

A :class:`Block` is a stretch of tagged lines whose surroundings are known to
be unchanged. :func:`hunkify` cuts blocks into hunks carrying at most
``context_lines`` unchanged lines around each change and merges change runs
whose context windows would touch.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from diffmod.engine.model import Hunk, Line, LineTag


class Origin(str, Enum):
    """Which input of a composition a result line stems from."""

    FIRST = "first"
    SECOND = "second"


@dataclass(frozen=True, slots=True)
class Block:
    old_pos: int
    new_pos: int
    lines: tuple[Line, ...]
    origins: tuple[Origin | None, ...] | None = None


def change_runs(lines: Sequence[Line]) -> list[tuple[int, int]]:
    """Return ``[begin, end)`` index pairs of maximal non-context runs."""

    runs: list[tuple[int, int]] = []
    idx = 0
    while idx < len(lines):
        if lines[idx].tag is LineTag.CONTEXT:
            idx += 1
            continue
        begin = idx
        while idx < len(lines) and lines[idx].tag is not LineTag.CONTEXT:
            idx += 1
        runs.append((begin, idx))
    return runs


def normalize_runs(
    lines: Sequence[Line],
    origins: Sequence[Origin | None] | None = None,
) -> tuple[list[Line], list[Origin | None] | None]:
    """Reorder every change run so removals precede additions, keeping relative order."""

    out_lines = list(lines)
    out_origins = list(origins) if origins is not None else None
    for begin, end in change_runs(out_lines):
        order = sorted(range(begin, end), key=lambda i: (out_lines[i].tag is LineTag.ADDED, i))
        run_lines = [out_lines[i] for i in order]
        out_lines[begin:end] = run_lines
        if out_origins is not None:
            run_origins = [out_origins[i] for i in order]
            out_origins[begin:end] = run_origins
    return out_lines, out_origins


def hunkify(blocks: Iterable[Block], context_lines: int) -> tuple[Hunk, ...]:
    """Build hunks from blocks, trimming and splitting on unchanged lines."""

    hunks: list[Hunk] = []
    for block in blocks:
        hunks.extend(_block_hunks(block, context_lines))
    return tuple(hunks)


def _block_hunks(block: Block, context_lines: int) -> list[Hunk]:
    lines = block.lines
    runs = change_runs(lines)
    if not runs:
        return []

    old_at = [block.old_pos]
    new_at = [block.new_pos]
    for line in lines:
        old_at.append(old_at[-1] + (1 if line.tag.covers_old else 0))
        new_at.append(new_at[-1] + (1 if line.tag.covers_new else 0))

    groups: list[list[int]] = [[runs[0][0], runs[0][1]]]
    for begin, end in runs[1:]:
        if begin - groups[-1][1] <= 2 * context_lines:
            groups[-1][1] = end
        else:
            groups.append([begin, end])

    hunks: list[Hunk] = []
    for begin, end in groups:
        start = max(begin - context_lines, 0)
        stop = min(end + context_lines, len(lines))
        hunks.append(Hunk.from_lines(old_at[start], new_at[start], lines[start:stop]))
    return hunks


__all__ = ["Origin", "Block", "change_runs", "normalize_runs", "hunkify"]
