"""Diff modulo base.

Inputs:

* ``target``: A → H, the branch's changes against the old ancestor A.
* ``base_old``: A → R and ``base_new``: A' → R, the old and the new ancestor
  each diffed against a shared reference state R.

The ancestor's movement is ``M = compose(base_old, reverse(base_new))``, an
A → A' diff. For each target file touched by M, the target is composed over
the reversed movement (A' → A → H) with every change line tagged by where it
came from. After identical removed/added pairs are reduced, a change run that
stems only from the movement is folded back into A' content, a run that
stems only from the target is kept, and a run mixing both is a conflict.
"""

from __future__ import annotations

import logging

from diffmod.config import DiffOptions
from diffmod.engine.buffer import Buffer
from diffmod.engine.compose import compose, compose_blocks, reduce_block, reverse, reverse_file
from diffmod.engine.differ import diff_lines
from diffmod.engine.hunks import Block, Origin, change_runs, hunkify
from diffmod.engine.model import Diff, DiffBuilder, File, Hunk, Line, LineTag
from diffmod.engine.names import FileName
from diffmod.engine.render import render_bytes
from diffmod.errors import ReconciliationConflict, error_context

logger = logging.getLogger(__name__)

BASE_CONTEXT = "old base vs. new base"
TARGET_CONTEXT = "target vs. old base"


def diff_modulo_base(buffer: Buffer, target: Diff, base_old: Diff, base_new: Diff) -> Diff:
    """Filter ``target`` down to the changes not explained by the base moving."""

    with error_context(BASE_CONTEXT):
        movement = compose(base_old, reverse(base_new), buffer, reduce=True)

    options = target.options
    builder = DiffBuilder(options)
    with error_context(TARGET_CONTEXT):
        if movement.files and options.strip_path_components != movement.options.strip_path_components:
            raise ReconciliationConflict(
                "target and base strip a different number of path components "
                f"({options.strip_path_components} and {movement.options.strip_path_components})"
            )
        for file in target.files:
            moved = _movement_for(file, movement)
            if moved is None:
                builder.add_file(file)
                continue
            with error_context(file.display_name):
                rebased = rebase_file(file, moved, buffer, options)
            if rebased is not None:
                builder.add_file(rebased)

    result = builder.build()
    logger.debug(
        "modulo base: %d target files, %d moved by the base, %d kept",
        len(target.files),
        len(movement.files),
        len(result.files),
    )
    return result


def render_modulo_base(buffer: Buffer, target: Diff, base_old: Diff, base_new: Diff) -> bytes:
    return render_bytes(diff_modulo_base(buffer, target, base_old, base_new), buffer)


def _movement_for(file: File, movement: Diff) -> File | None:
    if file.is_added:
        for moved in movement.files:
            if moved.is_added and moved.new_name == file.new_name:
                return moved
        return None
    return movement.find_by_old_name(file.old_name)


def rebase_file(target: File, moved: File, buffer: Buffer, options: DiffOptions) -> File | None:
    """Re-express a target file diff against the moved ancestor.

    Returns None when nothing of the target's change remains.
    """

    path = target.display_name
    if moved.is_deleted:
        if target.is_deleted:
            return None
        raise ReconciliationConflict("file removed by the base is modified by the target", path=path)

    old_name = moved.new_name
    if target.is_deleted:
        new_name = FileName.MISSING
    elif target.is_renamed:
        new_name = target.new_name
    else:
        new_name = old_name

    base_mode = moved.new_mode if moved.new_mode is not None else target.old_mode
    if target.is_deleted:
        old_mode, new_mode = base_mode, None
    elif target.is_added:
        old_mode, new_mode = moved.new_mode, target.new_mode
    elif target.has_mode_change:
        old_mode, new_mode = base_mode, target.new_mode
    else:
        old_mode = new_mode = None
    if old_mode is not None and old_mode == new_mode:
        old_mode = new_mode = None

    binary = False
    hunks: tuple[Hunk, ...] = ()
    if target.binary or moved.binary:
        binary = _rebase_binary(target, moved, path)
    elif target.is_added:
        old = [line for hunk in moved.hunks for line in hunk.lines]
        new = [line for hunk in target.hunks for line in hunk.lines]
        lines = diff_lines(buffer, old, new, options.algorithm)
        hunks = hunkify([Block(0, 0, tuple(lines))], options.context_lines)
    else:
        hunks = _rebase_hunks(target, moved, buffer, options, path)

    unchanged = (
        not hunks
        and not binary
        and old_name == new_name
        and old_mode is None
        and new_mode is None
    )
    if unchanged:
        logger.debug("%s: change is explained by the base", path)
        return None

    return File(
        old_name=old_name,
        new_name=new_name,
        hunks=hunks,
        binary=binary,
        old_mode=old_mode if not old_name.is_missing else None,
        new_mode=new_mode,
        old_index=target.old_index if binary else None,
        new_index=target.new_index if binary else None,
        index_mode=target.index_mode if binary else None,
    )


def _rebase_binary(target: File, moved: File, path: str) -> bool:
    if target.binary and moved.binary:
        if target.new_index is not None and target.new_index == moved.new_index:
            return False
        raise ReconciliationConflict("binary file changed by both the base and the target", path=path)
    if moved.binary:
        if target.hunks:
            raise ReconciliationConflict("text changes on a binary file changed by the base", path=path)
        return False
    if moved.hunks:
        raise ReconciliationConflict("binary change on a file changed by the base", path=path)
    return True


def _rebase_hunks(
    target: File, moved: File, buffer: Buffer, options: DiffOptions, path: str
) -> tuple[Hunk, ...]:
    composed = compose_blocks(reverse_file(moved), target, buffer)
    blocks = [reduce_block(block, buffer, options) for block in composed]

    rebased: list[Block] = []
    delta = 0
    for block in blocks:
        lines = _fold_base_runs(block, path)
        rebased.append(Block(block.old_pos, block.old_pos + delta, tuple(lines)))
        delta += sum(1 for line in lines if line.tag is LineTag.ADDED)
        delta -= sum(1 for line in lines if line.tag is LineTag.REMOVED)
    return hunkify(rebased, options.context_lines)


def _fold_base_runs(block: Block, path: str) -> list[Line]:
    lines = block.lines
    origins = block.origins or (None,) * len(lines)

    old_at = [block.old_pos]
    for line in lines:
        old_at.append(old_at[-1] + (1 if line.tag.covers_old else 0))

    out: list[Line] = []
    cursor = 0
    for begin, end in change_runs(lines):
        out.extend(lines[cursor:begin])
        cursor = end
        sources = {origins[idx] for idx in range(begin, end)}
        if sources == {Origin.FIRST}:
            # Movement-only: keep the A' side as context.
            out.extend(
                line.with_tag(LineTag.CONTEXT) for line in lines[begin:end] if line.tag is LineTag.REMOVED
            )
        elif sources == {Origin.SECOND}:
            out.extend(lines[begin:end])
        else:
            line_number = old_at[begin] + 1
            raise ReconciliationConflict(
                f"line {line_number} is changed by both the base and the target",
                path=path,
                line=line_number,
            )
    out.extend(lines[cursor:])
    return out


__all__ = [
    "diff_modulo_base",
    "render_modulo_base",
    "rebase_file",
    "BASE_CONTEXT",
    "TARGET_CONTEXT",
]
