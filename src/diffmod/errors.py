"""Error types shared by the diff engine and its collaborators.

Every error carries a context chain. Lower layers raise with a plain message;
higher layers prepend their own context (operation, file, line) while the
error propagates, so the final message reads ``"outer: inner: detail"``.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TypeVar

E = TypeVar("E", bound="DiffModError")


class DiffModError(Exception):
    """Base class for all diffmod errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.context: tuple[str, ...] = ()

    def with_context(self: E, prefix: str) -> E:
        """Return a copy of this error with ``prefix`` prepended to its context."""

        wrapped = copy.copy(self)
        wrapped.context = (prefix, *self.context)
        return wrapped

    def __str__(self) -> str:
        return ": ".join((*self.context, self.message))


class ParseError(DiffModError):
    """Raised when diff text or a diff header cannot be parsed."""


class MalformedPath(ParseError):
    """Raised for empty paths or paths with too few components to strip."""


class IoError(DiffModError):
    """Raised when raw bytes cannot be loaded from a content provider."""


class ReconciliationConflict(DiffModError):
    """Raised when two diffs make incompatible claims about the same content."""

    def __init__(self, message: str, *, path: str | None = None, line: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.line = line


@contextmanager
def error_context(prefix: str) -> Iterator[None]:
    """Prefix any DiffModError escaping the block with ``prefix``."""

    try:
        yield
    except DiffModError as exc:
        raise exc.with_context(prefix) from exc


__all__ = [
    "DiffModError",
    "ParseError",
    "MalformedPath",
    "IoError",
    "ReconciliationConflict",
    "error_context",
]
