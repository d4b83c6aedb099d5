import logging
from pathlib import Path

import pytest

from diffmod.config import LogLevel
from diffmod.logging import LOGGER_NAME, _to_logging_level, configure_logging


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_configure_logging_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "diffmod.log"
    logger = configure_logging(LogLevel.INFO, log_file=log_file)

    logging.getLogger("diffmod.engine.parser").info("parsed %d files", 2)

    assert log_file.exists()
    assert "parsed 2 files" in log_file.read_text()
    assert logger.name == LOGGER_NAME


def test_configure_logging_is_idempotent(tmp_path: Path) -> None:
    log_file = tmp_path / "diffmod.log"
    logger1 = configure_logging(log_file=log_file)
    logger2 = configure_logging(log_file=log_file)

    assert logger1 is logger2
    assert len(logger1.handlers) == 1


def test_configure_logging_without_file_adds_no_handler() -> None:
    logger = configure_logging(LogLevel.DEBUG)

    assert logger.level == logging.DEBUG
    assert logger.handlers == []


def test_level_filters_messages(tmp_path: Path) -> None:
    log_file = tmp_path / "diffmod.log"
    logger = configure_logging(LogLevel.ERROR, log_file=log_file)

    logger.warning("quiet")
    logger.error("loud")

    content = log_file.read_text()
    assert "loud" in content
    assert "quiet" not in content


def test_unknown_log_level_string_defaults_to_warning() -> None:
    logger = configure_logging("verbose")

    assert logger.level == logging.WARNING


def test_to_logging_level_handles_enum_and_string():
    assert _to_logging_level(LogLevel.ERROR) == logging.ERROR
    assert _to_logging_level("debug") == logging.DEBUG
    assert _to_logging_level(123) == logging.WARNING  # type: ignore[arg-type]
