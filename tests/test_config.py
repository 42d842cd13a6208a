from __future__ import annotations

from pathlib import Path

import pytest

from strudelbop.config import DEFAULT_MODEL, AppConfig


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "STRUDELBOP_SAMPLES_DIR",
        "STRUDELBOP_SAMPLE_BASE_URL",
        "STRUDELBOP_MODEL",
        "STRUDELBOP_DEFAULT_VOLUME",
        "STRUDELBOP_DEFAULT_REVERB",
        "STRUDELBOP_LOG_DIR",
        "FFMPEG_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STRUDELBOP_DATA_DIR", str(tmp_path))

    config = AppConfig.from_env()

    assert config.data_dir == tmp_path
    assert config.samples_dir == tmp_path / "samples"
    assert config.patterns_path == tmp_path / "patterns.json"
    assert config.model == DEFAULT_MODEL
    assert config.log_dir == tmp_path / "logs"
    assert (config.default_volume, config.default_reverb) == (80, 20)


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STRUDELBOP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("STRUDELBOP_SAMPLES_DIR", str(tmp_path / "audio"))
    monkeypatch.setenv("STRUDELBOP_SAMPLE_BASE_URL", "http://deck.local:9000/")
    monkeypatch.setenv("STRUDELBOP_MODEL", "openai/gpt-4o-mini")
    monkeypatch.setenv("STRUDELBOP_DEFAULT_VOLUME", "250")
    monkeypatch.setenv("STRUDELBOP_DEFAULT_REVERB", "loud")
    monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
    monkeypatch.setenv("STRUDELBOP_LOG_DIR", str(tmp_path / "trace"))

    config = AppConfig.from_env()

    assert config.samples_dir == tmp_path / "audio"
    assert config.model == "openai/gpt-4o-mini"
    assert config.default_volume == 100
    assert config.default_reverb == 20
    assert config.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
    assert config.log_dir == tmp_path / "trace"
    assert config.sample_url("/samples/loop.mp3") == "http://deck.local:9000/samples/loop.mp3"


def test_log_dir_defaults_under_data_dir(tmp_path: Path) -> None:
    config = AppConfig(data_dir=tmp_path, samples_dir=tmp_path / "samples")

    assert config.log_dir == tmp_path / "logs"
    assert AppConfig(
        data_dir=tmp_path, samples_dir=tmp_path, log_dir=tmp_path / "elsewhere"
    ).log_dir == tmp_path / "elsewhere"
