from __future__ import annotations

import logging
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict

from .program import SILENCE_PROGRAM

_LOGGER = logging.getLogger("strudelbop.runtime")


class EvaluationRuntime(Protocol):
    """Pattern evaluation / audio output runtime driven by the session engine."""

    async def resume(self) -> None: ...

    async def evaluate(self, text: str, reset_all: bool, hush_first: bool) -> None: ...

    def stop(self) -> None: ...

    def set_tempo(self, cps: float) -> None: ...

    async def preload_sample(self, source: str) -> None: ...


class RuntimeCall(BaseModel):
    kind: Literal["resume", "evaluate", "stop", "set_tempo", "preload_sample"]
    text: str | None = None
    reset_all: bool | None = None
    hush_first: bool | None = None
    cps: float | None = None
    source: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class RecordingRuntime:
    """In-process runtime that records every call instead of making sound.

    Used for dry runs (``strudelbop combine``) and for inspecting what a
    session would have sent to a real runtime.
    """

    def __init__(self) -> None:
        self.calls: list[RuntimeCall] = []
        self.cps: float | None = None
        self.loaded_samples: list[str] = []
        self.current_program: str | None = None

    async def resume(self) -> None:
        self.calls.append(RuntimeCall(kind="resume"))

    async def evaluate(self, text: str, reset_all: bool, hush_first: bool) -> None:
        self.calls.append(
            RuntimeCall(kind="evaluate", text=text, reset_all=reset_all, hush_first=hush_first)
        )
        self.current_program = None if text == SILENCE_PROGRAM else text
        _LOGGER.debug("Recorded evaluation:\n%s", text)

    def stop(self) -> None:
        self.calls.append(RuntimeCall(kind="stop"))
        self.current_program = None

    def set_tempo(self, cps: float) -> None:
        self.calls.append(RuntimeCall(kind="set_tempo", cps=cps))
        self.cps = cps

    async def preload_sample(self, source: str) -> None:
        self.calls.append(RuntimeCall(kind="preload_sample", source=source))
        self.loaded_samples.append(source)

    def evaluated_programs(self) -> list[str]:
        return [call.text for call in self.calls if call.kind == "evaluate" and call.text]
