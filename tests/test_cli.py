import logging
import subprocess
from pathlib import Path

import pytest

from diffmod import __version__, cli
from diffmod.logging import LOGGER_NAME

FIRST = "--- a/f.txt\n+++ b/f.txt\n@@ -1,3 +1,3 @@\n one\n-two\n+TWO\n three\n"
SECOND = "--- a/f.txt\n+++ b/f.txt\n@@ -1,3 +1,3 @@\n one\n TWO\n-three\n+THREE\n"


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def _write(tmp_path: Path, name: str, text: str) -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_version_constant() -> None:
    assert __version__ == "0.1.0"


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_config_path(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("DIFFMOD_HOME", str(tmp_path / "home"))
    code = cli.main(["config", "path"])
    assert code == 0
    out = capsys.readouterr().out.strip()
    assert out == str(tmp_path / "home" / "config.toml")


def test_config_print(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("DIFFMOD_CONTEXT", "5")
    code = cli.main(["--algorithm", "histogram", "config", "print"])
    assert code == 0
    out = capsys.readouterr().out
    assert '"context_lines": 5' in out
    assert '"algorithm": "histogram"' in out


def test_diff_two_files(capsys, tmp_path) -> None:
    old = _write(tmp_path, "old.txt", "one\ntwo\nthree\n")
    new = _write(tmp_path, "new.txt", "one\nTWO\nthree\n")

    code = cli.main(["--color", "never", "diff", old, new])

    assert code == 0
    out = capsys.readouterr().out
    assert "@@ -1,3 +1,3 @@\n one\n-two\n+TWO\n three\n" in out
    assert f"--- a{old}" in out


def test_diff_identical_files_prints_nothing(capsys, tmp_path) -> None:
    old = _write(tmp_path, "old.txt", "same\n")

    assert cli.main(["diff", old, old]) == 0
    assert capsys.readouterr().out == ""


def test_diff_against_dev_null(capsys, tmp_path) -> None:
    new = _write(tmp_path, "new.txt", "hello\n")

    assert cli.main(["diff", "/dev/null", new]) == 0

    out = capsys.readouterr().out
    assert "--- /dev/null\n" in out
    assert "@@ -0,0 +1,1 @@\n+hello\n" in out


def test_compose_patches(capsys, tmp_path) -> None:
    first = _write(tmp_path, "first.diff", FIRST)
    second = _write(tmp_path, "second.diff", SECOND)

    assert cli.main(["compose", first, second]) == 0

    out = capsys.readouterr().out
    assert "-two\n-three\n+TWO\n+THREE\n" in out


def test_modulo_hides_base_changes(capsys, tmp_path) -> None:
    base_old = _write(tmp_path, "base_old.diff", FIRST)
    base_new = _write(tmp_path, "base_new.diff", "")
    target = _write(tmp_path, "target.diff", FIRST)

    assert cli.main(["modulo", base_old, base_new, target]) == 0
    assert capsys.readouterr().out == ""


def test_modulo_conflict_exits_with_error(capsys, tmp_path) -> None:
    base_old = _write(tmp_path, "base_old.diff", "")
    base_new = _write(tmp_path, "base_new.diff", "--- a/f.txt\n+++ b/f.txt\n@@ -1 +1 @@\n-moved\n+one\n")
    target = _write(tmp_path, "target.diff", "--- a/f.txt\n+++ b/f.txt\n@@ -1 +1 @@\n-one\n+uno\n")

    assert cli.main(["modulo", base_old, base_new, target]) == 1

    err = capsys.readouterr().err
    assert err.startswith("error: target vs. old base: f.txt: line 1 ")


def test_missing_input_is_reported(capsys, tmp_path) -> None:
    code = cli.main(["compose", str(tmp_path / "nope.diff"), str(tmp_path / "nope.diff")])

    assert code == 1
    assert "error: " in capsys.readouterr().err


def test_invalid_settings(capsys) -> None:
    assert cli.main(["--context", "-1", "config", "print"]) == 1
    assert "invalid settings" in capsys.readouterr().err


def test_color_output_uses_ansi(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.setenv("TERM", "xterm-256color")
    monkeypatch.delenv("NO_COLOR", raising=False)
    old = _write(tmp_path, "old.txt", "a\n")
    new = _write(tmp_path, "new.txt", "b\n")

    assert cli.main(["--color", "always", "diff", old, new]) == 0
    assert "\x1b[" in capsys.readouterr().out


def test_debug_flag_writes_log(tmp_path: Path) -> None:
    log_file = tmp_path / "debug.log"
    old = _write(tmp_path, "old.txt", "a\n")
    new = _write(tmp_path, "new.txt", "b\n")

    assert cli.main(["--debug", str(log_file), "diff", old, new]) == 0

    content = log_file.read_text()
    assert "diffed 1 old and 1 new lines" in content
    assert logging.getLogger(LOGGER_NAME).level == logging.DEBUG


def test_git_sources(mocker, capsys, tmp_path) -> None:
    run = mocker.patch(
        "diffmod.providers.subprocess.run",
        side_effect=[
            subprocess.CompletedProcess([], 0, FIRST.encode(), b""),
            subprocess.CompletedProcess([], 0, SECOND.encode(), b""),
        ],
    )

    assert cli.main(["--git", str(tmp_path), "compose", "A..B", "B..C"]) == 0

    assert [call.args[0][-1] for call in run.call_args_list] == ["A..B", "B..C"]
    assert "+THREE" in capsys.readouterr().out


def test_modulo_of_commits_uses_merge_bases(mocker, capsys, tmp_path) -> None:
    run = mocker.patch(
        "diffmod.providers.subprocess.run",
        side_effect=[
            subprocess.CompletedProcess([], 0, b"fork1\n", b""),
            subprocess.CompletedProcess([], 0, b"fork2\n", b""),
            subprocess.CompletedProcess([], 0, b"", b""),
            subprocess.CompletedProcess([], 0, b"", b""),
            subprocess.CompletedProcess([], 0, FIRST.encode(), b""),
        ],
    )

    assert cli.main(["--git", str(tmp_path), "modulo", "--commits", "main", "topic-v1", "topic-v2"]) == 0

    commands = [call.args[0][3:] for call in run.call_args_list]
    assert commands[:2] == [["merge-base", "main", "topic-v1"], ["merge-base", "main", "topic-v2"]]
    assert [command[-1] for command in commands[2:]] == ["topic-v1..fork1", "fork2..fork1", "topic-v1..topic-v2"]
    assert "+TWO" in capsys.readouterr().out


def test_modulo_commits_need_a_repository(capsys, tmp_path) -> None:
    assert cli.main(["modulo", "--commits", "main", "old", "new"]) == 1
    assert "requires --git" in capsys.readouterr().err
