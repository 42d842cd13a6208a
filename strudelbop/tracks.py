from __future__ import annotations

import re
import time
from collections.abc import Iterable
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .grid import SAMPLE_SOUND
from .program import format_tempo_directive
from .tempo import DEFAULT_BASE_TEMPO, DEFAULT_TEMPO_PERCENT, bpm_to_cps

AI_COLOR = "#EC4899"
SAMPLE_COLOR = "#F97316"
SAMPLE_LOOP_CYCLES = 4
_NAME_LIMIT = 30
_EXTENSION = re.compile(r"\.[^.]+$")


class PatternRecord(BaseModel):
    """One playable tile: a built-in, generated or sample-backed pattern."""

    id: str = Field(min_length=1)
    fragment: str
    display_name: str
    description: str = ""
    color: str = "#8B5CF6"
    base_tempo: float = Field(default=DEFAULT_BASE_TEMPO, gt=0)
    is_ai: bool = False
    is_sample: bool = False
    sample_path: str | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TrackSettings(BaseModel):
    """Per-track mixer values, both in percent."""

    volume: int = Field(default=80, ge=0, le=100)
    reverb: int = Field(default=20, ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")


def build_track_code(
    record: PatternRecord,
    settings: TrackSettings,
    tempo_percent: float = DEFAULT_TEMPO_PERCENT,
) -> str:
    """Full code sent for one track: tempo line, pattern, volume and reverb."""

    cps = bpm_to_cps(record.base_tempo) * (tempo_percent / 100)
    directive = format_tempo_directive(cps)
    gain = f"{settings.volume / 100:.2f}"
    room = f"{settings.reverb / 100:.2f}"
    if record.is_sample:
        return f"{directive}\n{record.fragment.strip()}.gain({gain}).room({room})"
    return f"{directive}\n{record.fragment.strip()}\n.gain({gain})\n.room({room})"


def export_active_code(entries: Iterable[tuple[PatternRecord, str]]) -> str:
    """Render ``(record, code)`` pairs as one commented listing."""

    return "\n\n".join(f"// {record.display_name}\n{code}" for record, code in entries)


def sample_to_record(filename: str, relative_path: str) -> PatternRecord:
    stem = _EXTENSION.sub("", PurePosixPath(filename).name)
    return PatternRecord(
        id=f"sample-{stem}",
        fragment=f's("{SAMPLE_SOUND}").loopAt({SAMPLE_LOOP_CYCLES})',
        display_name=stem.replace("_", " "),
        description="Downloaded sample",
        color=SAMPLE_COLOR,
        base_tempo=DEFAULT_BASE_TEMPO,
        is_sample=True,
        sample_path=relative_path,
    )


def record_from_generation(
    prompt: str,
    fragment: str,
    *,
    now_ms: int | None = None,
) -> PatternRecord:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    name = prompt[:_NAME_LIMIT] + ("..." if len(prompt) > _NAME_LIMIT else "")
    return PatternRecord(
        id=f"ai-{stamp}",
        fragment=fragment,
        display_name=name,
        description=prompt,
        color=AI_COLOR,
        base_tempo=DEFAULT_BASE_TEMPO,
        is_ai=True,
    )
