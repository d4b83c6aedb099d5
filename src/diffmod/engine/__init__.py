"""Diff engine: byte arena, diff model, parser, renderer, differ and composer."""

from __future__ import annotations

from .apply import apply_body, apply_file  # noqa: F401
from .buffer import Buffer, Range  # noqa: F401
from .compose import compose, reverse  # noqa: F401
from .differ import diff_file, diff_lines, reduce_changes  # noqa: F401
from .model import (  # noqa: F401
    Diff,
    DiffBuilder,
    File,
    Hunk,
    Line,
    LineTag,
    file_signature,
    same_diff,
)
from .modulo import diff_modulo_base, render_modulo_base  # noqa: F401
from .names import FileName  # noqa: F401
from .parser import parse  # noqa: F401
from .render import (  # noqa: F401
    ByteWriter,
    DiffWriter,
    LineStyle,
    StyledWriter,
    render_bytes,
    render_diff,
    render_styled,
)
