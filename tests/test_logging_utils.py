from __future__ import annotations

import logging
from pathlib import Path

import pytest

from strudelbop.config import AppConfig
from strudelbop.logging_utils import (
    configure_logging,
    debug_enabled,
    get_log_dir,
    get_log_path,
    log_exception,
)


def test_log_dir_uses_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRUDELBOP_LOG_DIR", str(tmp_path))

    assert get_log_dir() == tmp_path
    assert get_log_path() == tmp_path / "strudelbop.log"


def test_log_dir_follows_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STRUDELBOP_LOG_DIR", raising=False)
    monkeypatch.setenv("STRUDELBOP_DATA_DIR", str(tmp_path / "data"))

    assert get_log_dir() == tmp_path / "data" / "logs"


def test_log_path_from_explicit_config(tmp_path: Path) -> None:
    config = AppConfig(data_dir=tmp_path, samples_dir=tmp_path / "samples")

    assert get_log_path(config) == tmp_path / "logs" / "strudelbop.log"


def test_debug_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STRUDELBOP_DEBUG", raising=False)
    assert not debug_enabled()
    monkeypatch.setenv("STRUDELBOP_DEBUG", "1")
    assert debug_enabled()


def test_configure_logging_adds_file_handler(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STRUDELBOP_LOG_DIR", str(tmp_path))

    configure_logging(force=True)

    logger = logging.getLogger("strudelbop")
    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert [Path(h.baseFilename) for h in file_handlers] == [tmp_path / "strudelbop.log"]
    assert logger.propagate


def test_log_exception_appends_traceback(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("STRUDELBOP_LOG_DIR", str(tmp_path / "logs"))
    try:
        raise ValueError("bad fragment")
    except ValueError as exc:
        path = log_exception("combine", exc)

    assert path == tmp_path / "logs" / "strudelbop.log"
    text = path.read_text(encoding="utf-8")
    assert "combine failed: ValueError: bad fragment" in text
    assert "Traceback" in text
