import pathlib
import shutil
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"

# Ensure src/ is importable when running tests without installing the package.
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from diffmod.config import DiffOptions  # noqa: E402
from diffmod.engine.buffer import Buffer  # noqa: E402
from diffmod.engine.model import Diff  # noqa: E402
from diffmod.engine.parser import parse  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_diffmod_home(monkeypatch: pytest.MonkeyPatch):
    """Point DIFFMOD_HOME at a repo-local sandbox so we never touch the real FS."""

    home = PROJECT_ROOT / ".work"
    if home.exists():
        shutil.rmtree(home, ignore_errors=True)
    home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("DIFFMOD_HOME", str(home))
    for name in ("DIFFMOD_ALGORITHM", "DIFFMOD_CONTEXT", "DIFFMOD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def buffer() -> Buffer:
    return Buffer()


@pytest.fixture
def load(buffer: Buffer):
    """Factory parsing diff text into the shared test buffer."""

    def _load(text: str | bytes, options: DiffOptions | None = None) -> Diff:
        data = text.encode() if isinstance(text, str) else text
        return parse(buffer, buffer.insert(data), options)

    return _load


@pytest.fixture
def body_lines():
    """Split file text into the line contents apply_file works on."""

    def _lines(text: str) -> list[bytes]:
        return [line.encode() for line in text.splitlines()]

    return _lines
