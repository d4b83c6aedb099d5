"""Composition of sequential diffs.

``compose(first, second)`` turns an A→B diff and a B→C diff into the A→C
diff. Hunks of both inputs are clustered over the shared B line numbers:
``first`` hunks by their new side, ``second`` hunks by their old side. Inside
a cluster every B line is known from at least one of the inputs, so the A→C
lines can be rebuilt from per-line flags:

* kept by both: context;
* introduced by ``first`` and kept by ``second``: added;
* present in A and removed by ``second``: removed;
* introduced by ``first`` and removed by ``second``: gone.

Lines ``first`` removes from A and lines ``second`` adds to C are anchored
before the B line that follows them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import zip_longest

from diffmod.config import DiffOptions
from diffmod.engine.buffer import Buffer
from diffmod.engine.differ import diff_lines, reduce_changes
from diffmod.engine.hunks import Block, Origin, hunkify, normalize_runs
from diffmod.engine.model import Diff, DiffBuilder, File, Hunk, Line, LineTag
from diffmod.errors import ReconciliationConflict, error_context

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Cluster:
    lo: int
    hi: int
    first: list[Hunk] = field(default_factory=list)
    second: list[Hunk] = field(default_factory=list)


def compose(
    first: Diff,
    second: Diff,
    buffer: Buffer,
    *,
    options: DiffOptions | None = None,
    reduce: bool = False,
) -> Diff:
    """Compose an A→B diff with a B→C diff into the A→C diff."""

    if first.options.strip_path_components != second.options.strip_path_components:
        raise ReconciliationConflict(
            "diffs strip a different number of path components "
            f"({first.options.strip_path_components} and {second.options.strip_path_components})"
        )
    result_options = options or first.options
    builder = DiffBuilder(result_options)
    used: set[int] = set()

    for f in first.files:
        with error_context(f.display_name):
            idx = _counterpart(f, second, used)
            if idx is None:
                builder.add_file(f)
                continue
            used.add(idx)
            composed = compose_file(f, second.files[idx], buffer, result_options, reduce=reduce)
        if composed is not None:
            builder.add_file(composed)

    for idx, s in enumerate(second.files):
        if idx in used:
            continue
        if not s.old_name.is_missing and any(
            f.old_name == s.old_name and f.new_name != s.old_name for f in first.files
        ):
            with error_context(s.old_name.display()):
                raise ReconciliationConflict(
                    "file moved away by the first diff is modified by the second",
                    path=s.old_name.display(),
                )
        builder.add_file(s)

    result = builder.build()
    logger.debug(
        "composed %d and %d files into %d", len(first.files), len(second.files), len(result.files)
    )
    return result


def _counterpart(f: File, second: Diff, used: set[int]) -> int | None:
    if not f.is_deleted:
        for idx, s in enumerate(second.files):
            if idx not in used and s.old_name == f.new_name:
                return idx
        return None

    for idx, s in enumerate(second.files):
        if idx not in used and s.old_name == f.old_name:
            raise ReconciliationConflict(
                "file deleted by the first diff is modified by the second", path=f.old_name.display()
            )
    for idx, s in enumerate(second.files):
        if idx not in used and s.is_added and s.new_name == f.old_name:
            return idx
    return None


def compose_file(
    f: File,
    s: File,
    buffer: Buffer,
    options: DiffOptions,
    *,
    reduce: bool = False,
) -> File | None:
    """Compose two matched file diffs; None when nothing is left to show."""

    old_name, new_name = f.old_name, s.new_name
    if old_name.is_missing and new_name.is_missing:
        if not (f.binary or s.binary):
            _check_removed_as_added(f, s, buffer)
        return None

    binary = False
    hunks: tuple[Hunk, ...] = ()
    if f.is_deleted and s.is_added:
        binary = f.binary or s.binary
        if not binary:
            old = [line for hunk in f.hunks for line in hunk.lines]
            new = [line for hunk in s.hunks for line in hunk.lines]
            lines = diff_lines(buffer, old, new, options.algorithm)
            hunks = hunkify([Block(0, 0, tuple(lines))], options.context_lines)
    elif f.binary or s.binary:
        binary = True
    else:
        blocks = compose_blocks(f, s, buffer)
        if reduce:
            blocks = [reduce_block(block, buffer, options) for block in blocks]
        hunks = hunkify(blocks, options.context_lines)

    old_mode = f.old_mode if f.old_mode is not None else s.old_mode
    new_mode = s.new_mode if s.new_mode is not None else f.new_mode
    if old_name.is_missing:
        old_mode = None
    elif new_name.is_missing:
        new_mode = None
    elif old_mode == new_mode:
        old_mode = new_mode = None

    old_index, new_index = f.old_index, s.new_index
    if old_index is None or new_index is None:
        old_index = new_index = None
    if binary and old_index is not None and old_index == new_index:
        binary = False

    renamed = not old_name.is_missing and not new_name.is_missing and old_name != new_name
    unchanged = (
        not hunks
        and not binary
        and not renamed
        and old_mode is None
        and new_mode is None
        and not old_name.is_missing
        and not new_name.is_missing
    )
    if unchanged:
        return None
    if not binary and old_index is not None and old_index == new_index:
        old_index = new_index = None

    return File(
        old_name=old_name,
        new_name=new_name,
        hunks=hunks,
        old_path=f.old_path,
        new_path=s.new_path,
        binary=binary,
        old_mode=old_mode,
        new_mode=new_mode,
        old_index=old_index,
        new_index=new_index,
        index_mode=(s.index_mode or f.index_mode) if old_index is not None else None,
    )


def _check_removed_as_added(f: File, s: File, buffer: Buffer) -> None:
    """A file added by ``first`` must be deleted by ``second`` with the same lines."""

    path = f.new_name.display()
    added = [line for hunk in f.hunks for line in hunk.lines if line.tag.covers_new]
    removed = [line for hunk in s.hunks for line in hunk.lines if line.tag.covers_old]
    for number, (ours, theirs) in enumerate(zip_longest(added, removed), start=1):
        if (
            ours is None
            or theirs is None
            or ours.no_newline != theirs.no_newline
            or buffer.slice(ours.text) != buffer.slice(theirs.text)
        ):
            raise ReconciliationConflict(f"line {number} differs between the diffs", path=path, line=number)


def compose_blocks(f: File, s: File, buffer: Buffer) -> list[Block]:
    """Origin-tagged A→C blocks for two matched text file diffs."""

    path = f.new_name.display()
    clusters = _clusters(f, s)
    blocks: list[Block] = []
    first_delta = second_delta = 0
    for cluster in clusters:
        lines, origins = _cluster_lines(cluster, buffer, path)
        normalized, normalized_origins = normalize_runs(lines, origins)
        blocks.append(
            Block(
                old_pos=cluster.lo - first_delta,
                new_pos=cluster.lo + second_delta,
                lines=tuple(normalized),
                origins=tuple(normalized_origins or ()),
            )
        )
        first_delta += sum(hunk.delta for hunk in cluster.first)
        second_delta += sum(hunk.delta for hunk in cluster.second)
    logger.debug("%s: %d clusters", path, len(clusters))
    return blocks


def reduce_block(block: Block, buffer: Buffer, options: DiffOptions) -> Block:
    lines, origins = reduce_changes(block.lines, buffer, options.algorithm, block.origins)
    return Block(block.old_pos, block.new_pos, tuple(lines), tuple(origins) if origins is not None else None)


def _clusters(f: File, s: File) -> list[_Cluster]:
    spans = [(hunk.new_pos, hunk.new_end, 0, hunk) for hunk in f.hunks]
    spans += [(hunk.old_pos, hunk.old_end, 1, hunk) for hunk in s.hunks]
    spans.sort(key=lambda span: (span[0], span[1], span[2]))

    clusters: list[_Cluster] = []
    for lo, hi, side, hunk in spans:
        if not clusters or lo > clusters[-1].hi:
            clusters.append(_Cluster(lo, hi))
        cluster = clusters[-1]
        cluster.hi = max(cluster.hi, hi)
        (cluster.first if side == 0 else cluster.second).append(hunk)
    return clusters


def _cluster_lines(
    cluster: _Cluster, buffer: Buffer, path: str
) -> tuple[list[Line], list[Origin | None]]:
    size = cluster.hi - cluster.lo
    first_at: list[Line | None] = [None] * size
    second_at: list[Line | None] = [None] * size
    removed_before: list[list[Line]] = [[] for _ in range(size + 1)]
    added_before: list[list[Line]] = [[] for _ in range(size + 1)]

    for hunk in cluster.first:
        pos = hunk.new_pos - cluster.lo
        for line in hunk.lines:
            if line.tag is LineTag.REMOVED:
                removed_before[pos].append(line)
            else:
                first_at[pos] = line
                pos += 1
    for hunk in cluster.second:
        pos = hunk.old_pos - cluster.lo
        for line in hunk.lines:
            if line.tag is LineTag.ADDED:
                added_before[pos].append(line)
            else:
                second_at[pos] = line
                pos += 1

    lines: list[Line] = []
    origins: list[Origin | None] = []
    for offset in range(size + 1):
        for line in removed_before[offset]:
            lines.append(line)
            origins.append(Origin.FIRST)
        for line in added_before[offset]:
            lines.append(line)
            origins.append(Origin.SECOND)
        if offset == size:
            break

        ours, theirs = first_at[offset], second_at[offset]
        if ours is not None and theirs is not None and (
            ours.no_newline != theirs.no_newline or buffer.slice(ours.text) != buffer.slice(theirs.text)
        ):
            line_number = cluster.lo + offset + 1
            raise ReconciliationConflict(
                f"line {line_number} differs between the diffs", path=path, line=line_number
            )
        line = ours if ours is not None else theirs
        assert line is not None
        in_old = ours is None or ours.tag is LineTag.CONTEXT
        in_new = theirs is None or theirs.tag is LineTag.CONTEXT
        if in_old and in_new:
            lines.append(line.with_tag(LineTag.CONTEXT))
            origins.append(None)
        elif in_old:
            lines.append(line.with_tag(LineTag.REMOVED))
            origins.append(Origin.SECOND)
        elif in_new:
            lines.append(line.with_tag(LineTag.ADDED))
            origins.append(Origin.FIRST)
    return lines, origins


def reverse(diff: Diff) -> Diff:
    """Swap the sides of every file diff."""

    return DiffBuilder(diff.options).extend(reverse_file(file) for file in diff.files).build()


def reverse_file(file: File) -> File:
    hunks = []
    for hunk in file.hunks:
        lines, _ = normalize_runs([line.with_tag(line.tag.reversed()) for line in hunk.lines])
        hunks.append(
            Hunk(hunk.new_start, hunk.new_count, hunk.old_start, hunk.old_count, tuple(lines), hunk.section)
        )
    return File(
        old_name=file.new_name,
        new_name=file.old_name,
        hunks=tuple(hunks),
        old_path=file.new_path,
        new_path=file.old_path,
        binary=file.binary,
        old_mode=file.new_mode,
        new_mode=file.old_mode,
        similarity=file.similarity,
        dissimilarity=file.dissimilarity,
        old_index=file.new_index,
        new_index=file.old_index,
        index_mode=file.index_mode,
    )


__all__ = ["compose", "compose_file", "compose_blocks", "reduce_block", "reverse", "reverse_file"]
