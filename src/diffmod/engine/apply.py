"""Application of a file diff to old-side content."""

from __future__ import annotations

from collections.abc import Sequence

from diffmod.engine.buffer import Buffer
from diffmod.engine.model import File, LineTag
from diffmod.errors import ReconciliationConflict


def apply_file(file: File, buffer: Buffer, old_lines: Sequence[bytes]) -> list[bytes]:
    """Apply the hunks of ``file`` to the old-side lines and return the new lines."""

    path = file.display_name
    if file.binary:
        raise ReconciliationConflict("cannot apply a binary diff", path=path)

    result: list[bytes] = []
    cursor = 0
    for number, hunk in enumerate(file.hunks, start=1):
        start = hunk.old_pos
        if start < cursor or start > len(old_lines):
            raise ReconciliationConflict(
                f"hunk {number} starts outside the file", path=path, line=hunk.old_start
            )
        result.extend(old_lines[cursor:start])
        idx = start

        for line in hunk.lines:
            content = buffer.slice(line.text)
            if line.tag.covers_old:
                if idx >= len(old_lines) or old_lines[idx] != content:
                    kind = "context" if line.tag is LineTag.CONTEXT else "delete"
                    raise ReconciliationConflict(
                        f"{kind} mismatch at line {idx + 1} during apply", path=path, line=idx + 1
                    )
                idx += 1
            if line.tag.covers_new:
                result.append(content)
        cursor = idx

    result.extend(old_lines[cursor:])
    return result


def apply_body(file: File, buffer: Buffer, body: bytes) -> bytes:
    """Apply ``file`` to a whole old body, keeping track of the final newline."""

    old_lines = body.split(b"\n")
    terminated = body.endswith(b"\n")
    if terminated or not body:
        old_lines.pop()

    new_lines = apply_file(file, buffer, old_lines)
    if not new_lines:
        return b""
    if file.hunks and file.hunks[-1].old_end == len(old_lines):
        terminated = not file.new_missing_newline
    return b"\n".join(new_lines) + (b"\n" if terminated else b"")


__all__ = ["apply_file", "apply_body"]
