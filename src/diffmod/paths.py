"""Common path utilities for diffmod."""

from __future__ import annotations

import os
from pathlib import Path


def get_diffmod_home() -> Path:
    """Return the base diffmod directory, honoring DIFFMOD_HOME if set."""

    env_path = os.environ.get("DIFFMOD_HOME")
    return Path(env_path).expanduser() if env_path else Path.home() / ".diffmod"


__all__ = ["get_diffmod_home"]
