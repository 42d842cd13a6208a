from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_LOGGER = logging.getLogger("strudelbop.config")

_DATA_DIR_ENV = "STRUDELBOP_DATA_DIR"
_SAMPLES_DIR_ENV = "STRUDELBOP_SAMPLES_DIR"
_SAMPLE_BASE_URL_ENV = "STRUDELBOP_SAMPLE_BASE_URL"
_MODEL_ENV = "STRUDELBOP_MODEL"
_DEFAULT_VOLUME_ENV = "STRUDELBOP_DEFAULT_VOLUME"
_DEFAULT_REVERB_ENV = "STRUDELBOP_DEFAULT_REVERB"
_LOG_DIR_ENV = "STRUDELBOP_LOG_DIR"
_FFMPEG_ENV = "FFMPEG_PATH"

DEFAULT_MODEL = "gemini/gemini-1.5-flash"
DEFAULT_SAMPLE_BASE_URL = "http://localhost:3001"
PATTERNS_FILE = "patterns.json"
LOGS_DIR = "logs"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _LOGGER.info("Ignoring non-integer %s=%r", name, value)
        return default


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def _default_data_dir() -> Path:
    configured = os.environ.get(_DATA_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "strudelbop" / "data"


class AppConfig(BaseModel):
    """Process-wide settings, resolved once at startup."""

    data_dir: Path
    samples_dir: Path
    log_dir: Path
    sample_base_url: str = DEFAULT_SAMPLE_BASE_URL
    ffmpeg_path: str = "ffmpeg"
    model: str = DEFAULT_MODEL
    default_volume: int = Field(default=80, ge=0, le=100)
    default_reverb: int = Field(default=20, ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _default_log_dir(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("log_dir") is None and data.get("data_dir"):
            return {**data, "log_dir": Path(data["data_dir"]) / LOGS_DIR}
        return data

    @property
    def patterns_path(self) -> Path:
        return self.data_dir / PATTERNS_FILE

    def sample_url(self, relative_path: str) -> str:
        return f"{self.sample_base_url.rstrip('/')}/{relative_path.lstrip('/')}"

    @classmethod
    def from_env(cls) -> "AppConfig":
        data_dir = _default_data_dir()
        samples_dir = os.environ.get(_SAMPLES_DIR_ENV)
        log_dir = os.environ.get(_LOG_DIR_ENV)
        volume = _env_int(_DEFAULT_VOLUME_ENV, 80)
        reverb = _env_int(_DEFAULT_REVERB_ENV, 20)
        return cls(
            data_dir=data_dir,
            samples_dir=Path(samples_dir).expanduser() if samples_dir else data_dir / "samples",
            log_dir=Path(log_dir).expanduser() if log_dir else data_dir / LOGS_DIR,
            sample_base_url=_env_str(_SAMPLE_BASE_URL_ENV, DEFAULT_SAMPLE_BASE_URL),
            ffmpeg_path=_env_str(_FFMPEG_ENV, "ffmpeg"),
            model=_env_str(_MODEL_ENV, DEFAULT_MODEL),
            default_volume=min(max(volume, 0), 100),
            default_reverb=min(max(reverb, 0), 100),
        )
