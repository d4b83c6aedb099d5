"""Two-file line differ.

Lines are compared by their exact bytes plus whether they end with a
newline. Two matchers are available:

* ``myers``: shortest edit script, deletions preferred before insertions.
* ``histogram``: recursively anchors on the least frequent common line and
  falls back to Myers for regions without a rare enough anchor.

Both are iterative and deterministic for identical input.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from diffmod.config import DiffAlgorithm, DiffOptions
from diffmod.engine.buffer import Buffer, Range
from diffmod.engine.hunks import Block, Origin, change_runs, hunkify, normalize_runs
from diffmod.engine.model import File, Line, LineTag
from diffmod.engine.names import FileName
from diffmod.errors import ParseError

logger = logging.getLogger(__name__)

HISTOGRAM_MAX_CHAIN = 64

Op = tuple[LineTag, int, int]


def diff_file(
    buffer: Buffer,
    old_path: Range | None,
    new_path: Range | None,
    old_body: Range,
    new_body: Range,
    options: DiffOptions | None = None,
    algorithm: DiffAlgorithm | None = None,
) -> File:
    """Diff two file bodies held in ``buffer`` into a :class:`File`."""

    options = options or DiffOptions()
    algorithm = algorithm or options.algorithm
    strip = options.strip_path_components

    old_name = FileName.from_bytes(buffer.slice(old_path), strip) if old_path is not None else FileName.MISSING
    new_name = FileName.from_bytes(buffer.slice(new_path), strip) if new_path is not None else FileName.MISSING
    if old_name.is_missing and old_body.length:
        raise ParseError("old side is missing but its body is not empty")
    if new_name.is_missing and new_body.length:
        raise ParseError("new side is missing but its body is not empty")

    if buffer.contains_zero(old_body) or buffer.contains_zero(new_body):
        same = buffer.slice(old_body) == buffer.slice(new_body)
        shown = old_name if new_name.is_missing else new_name
        logger.debug("binary content for %s (identical=%s)", shown, same)
        return File(
            old_name=old_name,
            new_name=new_name,
            old_path=old_path,
            new_path=new_path,
            binary=not same,
        )

    old_lines = body_lines(buffer, old_body)
    new_lines = body_lines(buffer, new_body)
    lines = diff_lines(buffer, old_lines, new_lines, algorithm)
    hunks = hunkify([Block(0, 0, tuple(lines))], options.context_lines)
    logger.debug(
        "diffed %d old and %d new lines into %d hunks with %s",
        len(old_lines),
        len(new_lines),
        len(hunks),
        algorithm.value,
    )
    return File(
        old_name=old_name,
        new_name=new_name,
        hunks=hunks,
        old_path=old_path,
        new_path=new_path,
    )


def body_lines(buffer: Buffer, body: Range) -> list[Line]:
    """Split a file body into context lines."""

    return [Line(LineTag.CONTEXT, span, not terminated) for span, terminated in buffer.lines(body)]


def diff_lines(
    buffer: Buffer,
    old: Sequence[Line],
    new: Sequence[Line],
    algorithm: DiffAlgorithm = DiffAlgorithm.MYERS,
) -> list[Line]:
    """Tag the lines turning ``old`` into ``new``; input tags are ignored."""

    old_keys, new_keys = _intern(buffer, old, new)
    lines: list[Line] = []
    for tag, i, j in edit_script(old_keys, new_keys, algorithm):
        if tag is LineTag.ADDED:
            lines.append(new[j].with_tag(LineTag.ADDED))
        else:
            lines.append(old[i].with_tag(tag))
    normalized, _ = normalize_runs(lines)
    return normalized


def reduce_changes(
    lines: Sequence[Line],
    buffer: Buffer,
    algorithm: DiffAlgorithm = DiffAlgorithm.MYERS,
    origins: Sequence[Origin | None] | None = None,
) -> tuple[list[Line], list[Origin | None] | None]:
    """Turn removed/added pairs with identical content back into context.

    Matched pairs lose their origin. Unmatched lines keep theirs.
    """

    out_lines: list[Line] = []
    out_origins: list[Origin | None] | None = [] if origins is not None else None
    cursor = 0
    for begin, end in change_runs(lines):
        out_lines.extend(lines[cursor:begin])
        if out_origins is not None and origins is not None:
            out_origins.extend(origins[cursor:begin])
        cursor = end

        removed = [i for i in range(begin, end) if lines[i].tag is LineTag.REMOVED]
        added = [i for i in range(begin, end) if lines[i].tag is LineTag.ADDED]
        if not removed or not added:
            out_lines.extend(lines[begin:end])
            if out_origins is not None and origins is not None:
                out_origins.extend(origins[begin:end])
            continue

        old_keys, new_keys = _intern(buffer, [lines[i] for i in removed], [lines[i] for i in added])
        run_lines: list[Line] = []
        run_origins: list[Origin | None] = []
        for tag, i, j in edit_script(old_keys, new_keys, algorithm):
            if tag is LineTag.CONTEXT:
                run_lines.append(lines[removed[i]].with_tag(LineTag.CONTEXT))
                run_origins.append(None)
            elif tag is LineTag.REMOVED:
                run_lines.append(lines[removed[i]])
                run_origins.append(origins[removed[i]] if origins is not None else None)
            else:
                run_lines.append(lines[added[j]])
                run_origins.append(origins[added[j]] if origins is not None else None)
        normalized, normalized_origins = normalize_runs(run_lines, run_origins)
        out_lines.extend(normalized)
        if out_origins is not None and normalized_origins is not None:
            out_origins.extend(normalized_origins)

    out_lines.extend(lines[cursor:])
    if out_origins is not None and origins is not None:
        out_origins.extend(origins[cursor:])
    return out_lines, out_origins


def edit_script(a: Sequence[int], b: Sequence[int], algorithm: DiffAlgorithm) -> list[Op]:
    """Return ``(tag, old_index, new_index)`` operations turning ``a`` into ``b``.

    Indices that do not apply to an operation are ``-1``.
    """

    if algorithm is DiffAlgorithm.HISTOGRAM:
        return _histogram(a, b)
    return _trimmed_myers(a, b, 0, len(a), 0, len(b))


def _intern(buffer: Buffer, old: Sequence[Line], new: Sequence[Line]) -> tuple[list[int], list[int]]:
    ids: dict[tuple[bytes, bool], int] = {}

    def key(line: Line) -> int:
        return ids.setdefault((buffer.slice(line.text), line.no_newline), len(ids))

    return [key(line) for line in old], [key(line) for line in new]


def _trimmed_myers(a: Sequence[int], b: Sequence[int], alo: int, ahi: int, blo: int, bhi: int) -> list[Op]:
    ops: list[Op] = []
    while alo < ahi and blo < bhi and a[alo] == b[blo]:
        ops.append((LineTag.CONTEXT, alo, blo))
        alo += 1
        blo += 1
    suffix: list[Op] = []
    while alo < ahi and blo < bhi and a[ahi - 1] == b[bhi - 1]:
        ahi -= 1
        bhi -= 1
        suffix.append((LineTag.CONTEXT, ahi, bhi))
    for tag, i, j in _myers(a[alo:ahi], b[blo:bhi]):
        ops.append((tag, i + alo if i >= 0 else -1, j + blo if j >= 0 else -1))
    ops.extend(reversed(suffix))
    return ops


def _myers(a: Sequence[int], b: Sequence[int]) -> list[Op]:
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return [(LineTag.REMOVED, i, -1) for i in range(n)] + [(LineTag.ADDED, -1, j) for j in range(m)]

    trace: list[dict[int, int]] = []
    v: dict[int, int] = {1: 0}
    done = False
    for d in range(n + m + 1):
        trace.append(dict(v))
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]
            else:
                x = v[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[k] = x
            if x >= n and y >= m:
                done = True
                break
        if done:
            break

    ops: list[Op] = []
    x, y = n, m
    for d in range(len(trace) - 1, -1, -1):
        snapshot = trace[d]
        k = x - y
        if k == -d or (k != d and snapshot[k - 1] < snapshot[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = snapshot[prev_k]
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            x -= 1
            y -= 1
            ops.append((LineTag.CONTEXT, x, y))
        if d > 0:
            if x == prev_x:
                ops.append((LineTag.ADDED, -1, prev_y))
            else:
                ops.append((LineTag.REMOVED, prev_x, -1))
        x, y = prev_x, prev_y
    ops.reverse()
    return ops


def _histogram(a: Sequence[int], b: Sequence[int]) -> list[Op]:
    ops: list[Op] = []
    # Work items: ("region", alo, ahi, blo, bhi) or ("equal", a_start, b_start, length, 0).
    stack: list[tuple[str, int, int, int, int]] = [("region", 0, len(a), 0, len(b))]
    while stack:
        kind, alo, ahi, blo, bhi = stack.pop()
        if kind == "equal":
            a_start, b_start, length = alo, ahi, blo
            ops.extend((LineTag.CONTEXT, a_start + offset, b_start + offset) for offset in range(length))
            continue

        while alo < ahi and blo < bhi and a[alo] == b[blo]:
            ops.append((LineTag.CONTEXT, alo, blo))
            alo += 1
            blo += 1
        tail = 0
        while alo < ahi - tail and blo < bhi - tail and a[ahi - tail - 1] == b[bhi - tail - 1]:
            tail += 1
        if tail:
            stack.append(("equal", ahi - tail, bhi - tail, tail, 0))
            ahi -= tail
            bhi -= tail

        if alo == ahi or blo == bhi:
            ops.extend((LineTag.REMOVED, i, -1) for i in range(alo, ahi))
            ops.extend((LineTag.ADDED, -1, j) for j in range(blo, bhi))
            continue

        anchor = _histogram_anchor(a, b, alo, ahi, blo, bhi)
        if anchor is None:
            ops.extend(_trimmed_myers(a, b, alo, ahi, blo, bhi))
            continue

        i, j = anchor
        start_i, start_j = i, j
        while start_i > alo and start_j > blo and a[start_i - 1] == b[start_j - 1]:
            start_i -= 1
            start_j -= 1
        end_i, end_j = i + 1, j + 1
        while end_i < ahi and end_j < bhi and a[end_i] == b[end_j]:
            end_i += 1
            end_j += 1

        stack.append(("region", end_i, ahi, end_j, bhi))
        stack.append(("equal", start_i, start_j, end_i - start_i, 0))
        stack.append(("region", alo, start_i, blo, start_j))
    return ops


def _histogram_anchor(
    a: Sequence[int], b: Sequence[int], alo: int, ahi: int, blo: int, bhi: int
) -> tuple[int, int] | None:
    counts: dict[int, int] = {}
    first_seen: dict[int, int] = {}
    for i in range(alo, ahi):
        counts[a[i]] = counts.get(a[i], 0) + 1
        first_seen.setdefault(a[i], i)

    best: tuple[int, int] | None = None
    best_count = HISTOGRAM_MAX_CHAIN + 1
    for j in range(blo, bhi):
        count = counts.get(b[j])
        if count is not None and count < best_count:
            best_count = count
            best = (first_seen[b[j]], j)
            if count == 1:
                break
    return best


__all__ = [
    "HISTOGRAM_MAX_CHAIN",
    "body_lines",
    "diff_file",
    "diff_lines",
    "edit_script",
    "reduce_changes",
]
