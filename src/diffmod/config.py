"""Configuration models and enums for diffmod.

Single source of truth for diff options, output settings, and defaults.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field

from diffmod.paths import get_diffmod_home


class DiffAlgorithm(str, Enum):
    MYERS = "myers"
    HISTOGRAM = "histogram"


class ColorMode(str, Enum):
    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


DEFAULT_STRIP_PATH_COMPONENTS = 1
DEFAULT_CONTEXT_LINES = 3


class DiffOptions(BaseModel):
    """Options a diff was produced with. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    strip_path_components: int = Field(default=DEFAULT_STRIP_PATH_COMPONENTS, ge=0)
    context_lines: int = Field(default=DEFAULT_CONTEXT_LINES, ge=0)
    algorithm: DiffAlgorithm = DiffAlgorithm.MYERS


class Settings(BaseModel):
    """Resolved diffmod settings."""

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    strip_path_components: int = Field(default=DEFAULT_STRIP_PATH_COMPONENTS, ge=0)
    context_lines: int = Field(default=DEFAULT_CONTEXT_LINES, ge=0)
    algorithm: DiffAlgorithm = DiffAlgorithm.MYERS
    color: ColorMode = ColorMode.AUTO
    log_level: LogLevel = LogLevel.WARNING

    def diff_options(self) -> DiffOptions:
        return DiffOptions(
            strip_path_components=self.strip_path_components,
            context_lines=self.context_lines,
            algorithm=self.algorithm,
        )


def default_config_path() -> Path:
    return get_diffmod_home() / "config.toml"


def load_settings(
    cli_overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
    config_path: Path | str | None = None,
) -> Settings:
    """Resolve settings: CLI overrides, then environment, then config file, then defaults."""

    env = os.environ if env is None else env
    cli_overrides = cli_overrides or {}
    path = Path(config_path) if config_path else default_config_path()

    config_data: dict[str, Any] = {}
    if path.exists():
        config_data = _read_toml(path)

    defaults = Settings()

    strip_path_components = _first_value(
        cli_overrides.get("strip_path_components"),
        _get_config_value(config_data, "diff", "strip_path_components"),
        defaults.strip_path_components,
    )

    context_lines = _first_value(
        cli_overrides.get("context_lines"),
        _clean_str(env.get("DIFFMOD_CONTEXT")),
        _get_config_value(config_data, "diff", "context_lines"),
        defaults.context_lines,
    )

    algorithm = _first_value(
        _clean_str(cli_overrides.get("algorithm")),
        _clean_str(env.get("DIFFMOD_ALGORITHM")),
        _clean_str(_get_config_value(config_data, "diff", "algorithm")),
    )

    color = _first_value(
        _clean_str(cli_overrides.get("color")),
        _clean_str(_get_config_value(config_data, "output", "color")),
    )

    log_level = _first_value(
        _clean_str(cli_overrides.get("log_level")),
        _clean_str(env.get("DIFFMOD_LOG_LEVEL")),
        _clean_str(_get_config_value(config_data, "logging", "log_level")),
    )

    algorithm_val = cast(DiffAlgorithm, _coerce_enum(algorithm, DiffAlgorithm, defaults.algorithm))
    color_val = cast(ColorMode, _coerce_enum(color, ColorMode, defaults.color))
    log_level_val = cast(LogLevel, _coerce_enum(log_level, LogLevel, defaults.log_level))

    return Settings(
        strip_path_components=strip_path_components,
        context_lines=context_lines,
        algorithm=algorithm_val,
        color=color_val,
        log_level=log_level_val,
    )


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _get_config_value(config: Mapping[str, Any], section: str, key: str) -> Any:
    section_data = config.get(section)
    if not isinstance(section_data, dict):
        return None
    return section_data.get(key)


def _clean_str(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return value


def _first_value(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _coerce_enum(value: Any, enum_cls: type[Enum], default: Enum | None = None) -> Enum | None:
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            return default
    return default


__all__ = [
    "DiffAlgorithm",
    "DiffOptions",
    "ColorMode",
    "LogLevel",
    "Settings",
    "default_config_path",
    "load_settings",
]
