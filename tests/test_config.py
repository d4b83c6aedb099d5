from pathlib import Path

import pytest
from pydantic import ValidationError

from diffmod.config import (
    ColorMode,
    DiffAlgorithm,
    DiffOptions,
    LogLevel,
    Settings,
    default_config_path,
    load_settings,
)


def test_settings_defaults() -> None:
    settings = Settings()
    assert settings.strip_path_components == 1
    assert settings.context_lines == 3
    assert settings.algorithm is DiffAlgorithm.MYERS
    assert settings.color is ColorMode.AUTO
    assert settings.log_level is LogLevel.WARNING


def test_diff_options_validation() -> None:
    with pytest.raises(ValidationError):
        DiffOptions(context_lines=-1)

    with pytest.raises(ValidationError):
        DiffOptions(strip_path_components=-2)

    with pytest.raises(ValidationError):
        DiffOptions(unknown=True)


def test_diff_options_are_frozen() -> None:
    options = DiffOptions()
    with pytest.raises(ValidationError):
        options.context_lines = 5  # type: ignore[misc]


def test_load_settings_without_file(tmp_path: Path) -> None:
    settings = load_settings(config_path=tmp_path / "missing.toml", env={})
    assert settings == Settings()


def test_default_config_path_under_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DIFFMOD_HOME", str(tmp_path))
    assert default_config_path() == tmp_path / "config.toml"


def test_load_settings_reads_config(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text(
        """
[diff]
strip_path_components = 0
context_lines = 5
algorithm = "histogram"

[output]
color = "never"

[logging]
log_level = "debug"
""",
        encoding="utf-8",
    )

    settings = load_settings(config_path=cfg, env={})
    assert settings.strip_path_components == 0
    assert settings.context_lines == 5
    assert settings.algorithm is DiffAlgorithm.HISTOGRAM
    assert settings.color is ColorMode.NEVER
    assert settings.log_level is LogLevel.DEBUG


def test_precedence_cli_then_env_then_file(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text('[diff]\ncontext_lines = 5\nalgorithm = "histogram"\n', encoding="utf-8")
    env = {"DIFFMOD_CONTEXT": "7", "DIFFMOD_ALGORITHM": "myers"}

    from_env = load_settings(config_path=cfg, env=env)
    assert from_env.context_lines == 7
    assert from_env.algorithm is DiffAlgorithm.MYERS

    from_cli = load_settings(cli_overrides={"context_lines": 1}, config_path=cfg, env=env)
    assert from_cli.context_lines == 1


def test_blank_values_are_ignored(tmp_path: Path) -> None:
    settings = load_settings(
        cli_overrides={"algorithm": "  ", "context_lines": None},
        config_path=tmp_path / "none.toml",
        env={"DIFFMOD_LOG_LEVEL": " "},
    )
    assert settings.algorithm is DiffAlgorithm.MYERS
    assert settings.log_level is LogLevel.WARNING


def test_unknown_enum_values_fall_back(tmp_path: Path) -> None:
    cfg = tmp_path / "config.toml"
    cfg.write_text('[diff]\nalgorithm = "patience"\n[output]\ncolor = "rainbow"\n', encoding="utf-8")

    settings = load_settings(config_path=cfg, env={"DIFFMOD_LOG_LEVEL": "verbose"})
    assert settings.algorithm is DiffAlgorithm.MYERS
    assert settings.color is ColorMode.AUTO
    assert settings.log_level is LogLevel.WARNING


def test_invalid_numbers_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        load_settings(config_path=tmp_path / "none.toml", env={"DIFFMOD_CONTEXT": "many"})

    with pytest.raises(ValidationError):
        load_settings(cli_overrides={"strip_path_components": -1}, config_path=tmp_path / "none.toml", env={})


def test_diff_options_from_settings() -> None:
    settings = Settings(strip_path_components=2, context_lines=0, algorithm=DiffAlgorithm.HISTOGRAM)
    assert settings.diff_options() == DiffOptions(
        strip_path_components=2, context_lines=0, algorithm=DiffAlgorithm.HISTOGRAM
    )


def test_coercion_helpers_defaults() -> None:
    from diffmod.config import _clean_str, _coerce_enum, _first_value, _get_config_value

    assert _coerce_enum("missing", ColorMode, ColorMode.AUTO) == ColorMode.AUTO
    assert _coerce_enum(3, ColorMode, ColorMode.NEVER) == ColorMode.NEVER
    assert _coerce_enum(LogLevel.INFO, LogLevel) is LogLevel.INFO
    assert _first_value(None, None) is None
    assert _first_value(None, 0, 5) == 0
    assert _clean_str("  ") is None
    assert _get_config_value({"diff": "not-a-table"}, "diff", "context_lines") is None
