"""Content providers: where raw patch text and file bodies come from.

The engine never performs I/O. Callers pick a provider, read bytes through
it, and hand them to the engine through a :class:`~diffmod.engine.Buffer`.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path

from diffmod.config import DiffOptions
from diffmod.engine.buffer import Buffer, Range
from diffmod.engine.model import Diff
from diffmod.engine.parser import parse
from diffmod.errors import DiffModError, IoError, error_context

logger = logging.getLogger(__name__)

MAX_STDERR_BYTES = 2_048


class ContentProvider(ABC):
    """Returns raw bytes for a named source."""

    @abstractmethod
    def read(self, source: str) -> bytes: ...


class FileContentProvider(ContentProvider):
    """Reads local files, relative paths resolved against ``root``."""

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root is not None else None

    def resolve(self, source: str) -> Path:
        path = Path(source).expanduser()
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def read(self, source: str) -> bytes:
        path = self.resolve(source)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise IoError(f"cannot read {path}: {exc.strerror or exc}") from exc


class CannedContentProvider(ContentProvider):
    """Serves bytes from a mapping; handy as a test double."""

    def __init__(self, contents: Mapping[str, bytes]) -> None:
        self.contents = dict(contents)
        self.requests: list[str] = []

    def read(self, source: str) -> bytes:
        self.requests.append(source)
        try:
            return self.contents[source]
        except KeyError:
            raise IoError(f"no canned content for {source}") from None


class GitContentProvider(ContentProvider):
    """Reads revision ranges and blobs from a git repository.

    ``read("A..B")`` returns ``git diff A B`` output and ``read("REV:path")``
    returns the blob at ``path`` in ``REV``.
    """

    def __init__(self, repo: Path | str, *, git: str = "git", timeout_s: float = 60.0) -> None:
        self.repo = Path(repo)
        self.git = git
        self.timeout_s = timeout_s

    def read(self, source: str) -> bytes:
        if ".." in source and ":" not in source:
            return self.run(["diff", "--no-color", "--no-ext-diff", source])
        if ":" in source:
            return self.run(["show", source])
        raise IoError(f"unsupported git source {source!r}: expected A..B or REV:path")

    def merge_base(self, first: str, second: str) -> str:
        return self.run(["merge-base", first, second]).decode("utf-8", errors="replace").strip()

    def modulo_ranges(self, base: str, old: str, new: str) -> tuple[str, str, str]:
        """Ranges for comparing two versions of a branch across a moved upstream.

        ``old`` and ``new`` are the branch tips before and after moving onto
        ``base``. Their fork points are the merge bases with ``base``. Returns
        ``(base_old, base_new, target)`` for :func:`diff_modulo_base`: ``old``
        and the new fork point are both diffed against the old fork point, and
        the target is ``old..new``.
        """

        for rev in (base, old, new):
            if ".." in rev:
                raise DiffModError(f"expected a single commit, got range {rev!r}")
        old_fork = self.merge_base(base, old)
        new_fork = self.merge_base(base, new)
        logger.debug("fork points: %s (old) and %s (new)", old_fork, new_fork)
        return f"{old}..{old_fork}", f"{new_fork}..{old_fork}", f"{old}..{new}"

    def run(self, args: Sequence[str]) -> bytes:
        command = [self.git, "-C", str(self.repo), *args]
        logger.debug("running %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise IoError(f"git {' '.join(args)} timed out after {self.timeout_s}s") from exc
        except OSError as exc:
            raise IoError(f"cannot run {self.git}: {exc.strerror or exc}") from exc

        if completed.returncode != 0:
            stderr = _truncate(completed.stderr.decode("utf-8", errors="replace"))
            raise IoError(f"git {' '.join(args)} failed with exit code {completed.returncode}: {stderr}")
        return completed.stdout


def load_body(buffer: Buffer, provider: ContentProvider, source: str) -> Range:
    """Read ``source`` and copy it into ``buffer``."""

    with error_context(source):
        return buffer.insert(provider.read(source))


def load_diff(
    buffer: Buffer,
    provider: ContentProvider,
    source: str,
    options: DiffOptions | None = None,
) -> Diff:
    """Read and parse a patch, prefixing any error with ``source``."""

    with error_context(source):
        span = buffer.insert(provider.read(source))
        return parse(buffer, span, options)


def _truncate(text: str, max_bytes: int = MAX_STDERR_BYTES, marker: str = "[truncated]") -> str:
    text = text.strip()
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore") + " " + marker


__all__ = [
    "ContentProvider",
    "FileContentProvider",
    "CannedContentProvider",
    "GitContentProvider",
    "load_body",
    "load_diff",
]
