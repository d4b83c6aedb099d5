"""diffmod: unified diff engine computing diffs modulo a moving base."""

from __future__ import annotations

from .config import DiffAlgorithm, DiffOptions  # noqa: F401
from .engine import (  # noqa: F401
    Buffer,
    Diff,
    DiffBuilder,
    File,
    FileName,
    Hunk,
    Line,
    LineTag,
    Range,
    compose,
    diff_file,
    diff_modulo_base,
    parse,
    render_bytes,
    render_modulo_base,
    reverse,
    same_diff,
)
from .errors import DiffModError, IoError, MalformedPath, ParseError, ReconciliationConflict  # noqa: F401

__version__ = "0.1.0"
