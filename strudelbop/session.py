from __future__ import annotations

import logging
from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict

from .config import AppConfig
from .errors import (
    CollaboratorError,
    EvaluationError,
    InvalidInputError,
    RuntimeUnavailableError,
    SamplePreloadError,
    StrudelBopError,
)
from .logging_utils import debug_enabled
from .program import SILENCE_PROGRAM, combine_program, split_tempo_directive
from .runtime import EvaluationRuntime
from .store import PatternStore
from .tempo import DEFAULT_BASE_TEMPO, DEFAULT_TEMPO_PERCENT, TempoController

_LOGGER = logging.getLogger("strudelbop.session")

ErrorKind = Literal["input", "collaborator", "evaluation"]


class OperationResult(BaseModel):
    """Success/failure signal returned by every mutating session operation."""

    ok: bool
    program: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    stale: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")


class SessionEvent(BaseModel):
    kind: Literal[
        "track_started",
        "track_stopped",
        "session_cleared",
        "program_evaluated",
        "silenced",
        "stale_result",
        "tempo_changed",
        "error",
    ]
    track_id: str | None = None
    program: str | None = None
    cps: float | None = None
    generation: int | None = None
    error: Exception | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


class SessionHooks(BaseModel):
    on_event: Callable[[SessionEvent], None] | None = None
    on_track_started: Callable[[str], None] | None = None
    on_track_stopped: Callable[[str], None] | None = None
    on_program_evaluated: Callable[[str], None] | None = None
    on_silenced: Callable[[], None] | None = None
    on_error: Callable[[Exception], None] | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def _emit_event(hooks: SessionHooks | None, event: SessionEvent) -> None:
    if hooks is None:
        return
    try:
        if hooks.on_event is not None:
            hooks.on_event(event)
        match event.kind:
            case "track_started":
                if hooks.on_track_started is not None and event.track_id is not None:
                    hooks.on_track_started(event.track_id)
            case "track_stopped":
                if hooks.on_track_stopped is not None and event.track_id is not None:
                    hooks.on_track_stopped(event.track_id)
            case "program_evaluated":
                if hooks.on_program_evaluated is not None and event.program is not None:
                    hooks.on_program_evaluated(event.program)
            case "silenced":
                if hooks.on_silenced is not None:
                    hooks.on_silenced()
            case "error":
                if hooks.on_error is not None and event.error is not None:
                    hooks.on_error(event.error)
            case _:
                pass
    except Exception as exc:
        _LOGGER.warning("Session hook failed: %s", exc, exc_info=debug_enabled())


class SessionEngine:
    """Single source of truth for what should be audible.

    Every mutating call takes a ticket when it starts. A ``play_track`` whose
    resume or preload finishes after a newer call already cleared the session
    or touched the same track is dropped as stale instead of re-adding
    itself. Each rebuild also carries a generation number; a runtime call
    that resolves after a newer rebuild started is reported as stale and
    does not touch ``last_error``.

    A leading ``setcps(...)`` line only prefixes the rebuild of the
    ``play_track`` call that supplied it. Later rebuilds leave the tempo to
    the runtime, so ``set_tempo`` is never undone by a stop.
    """

    def __init__(
        self,
        runtime: EvaluationRuntime,
        *,
        hooks: SessionHooks | None = None,
        tempo_percent: float = DEFAULT_TEMPO_PERCENT,
    ) -> None:
        self._runtime = runtime
        self._hooks = hooks
        self._store = PatternStore()
        self._base_tempos: dict[str, float] = {}
        self._tickets = 0
        # Newest ticket applied per track id, for the whole store, and overall.
        self._touched: dict[str, int] = {}
        self._cleared = 0
        self._latest_applied = 0
        self._generation = 0
        self._last_program: str | None = None
        self._last_error: str | None = None
        self.tempo = TempoController(self, percent=tempo_percent)

    @property
    def store(self) -> PatternStore:
        return self._store

    @property
    def active_ids(self) -> tuple[str, ...]:
        return tuple(self._store.ids())

    @property
    def is_playing(self) -> bool:
        return len(self._store) > 0

    @property
    def global_tempo_cps(self) -> float | None:
        return self.tempo.cps

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_program(self) -> str | None:
        return self._last_program

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def is_track_active(self, track_id: str) -> bool:
        return track_id in self._store

    def combined_program(self, directive: str | None = None) -> str | None:
        return combine_program(self._store.values(), directive)

    def reference_base_tempo(self) -> float | None:
        for track_id in self._store.ids():
            return self._base_tempos.get(track_id, DEFAULT_BASE_TEMPO)
        return None

    def push_tempo(self, cps: float) -> None:
        try:
            self._runtime.set_tempo(cps)
        except Exception as exc:
            raise RuntimeUnavailableError(f"Failed to set tempo: {exc}") from exc

    async def play_track(
        self,
        track_id: str,
        fragment: str,
        exclusive: bool = False,
        sample_url: str | None = None,
        *,
        base_tempo: float | None = None,
    ) -> OperationResult:
        if not track_id or not track_id.strip():
            return self._fail(InvalidInputError("Track id is required"), "input")
        if fragment is None or not fragment.strip():
            return self._fail(InvalidInputError(f"Track {track_id!r} has no pattern code"), "input")
        if base_tempo is not None and base_tempo <= 0:
            return self._fail(
                InvalidInputError(f"Base tempo must be positive, got {base_tempo:g}"), "input"
            )
        split = split_tempo_directive(fragment)
        if not split.body:
            return self._fail(
                InvalidInputError(f"Track {track_id!r} has only a tempo directive"), "input"
            )

        ticket = self._next_ticket()
        try:
            await self._resume()
            if sample_url:
                await self._preload(sample_url)
        except CollaboratorError as exc:
            return self._fail(exc, "collaborator")
        if self._superseded(ticket, track_id, exclusive):
            return self._dropped(ticket, track_id)

        if exclusive:
            self._clear_state(ticket)
        self._store.set_fragment(track_id, split.body)
        self._base_tempos[track_id] = base_tempo or DEFAULT_BASE_TEMPO
        self._mark(track_id, ticket)
        _LOGGER.info("Playing track %s (exclusive=%s)", track_id, exclusive)
        _emit_event(self._hooks, SessionEvent(kind="track_started", track_id=track_id))
        return await self._rebuild(split.directive)

    async def stop_track(self, track_id: str) -> OperationResult:
        ticket = self._next_ticket()
        self._store.remove_fragment(track_id)
        self._base_tempos.pop(track_id, None)
        self._mark(track_id, ticket)
        _LOGGER.info("Stopping track %s; active: %s", track_id, list(self._store.ids()))
        _emit_event(self._hooks, SessionEvent(kind="track_stopped", track_id=track_id))
        return await self._rebuild()

    async def stop_all(self) -> OperationResult:
        self._clear_state(self._next_ticket())
        _emit_event(self._hooks, SessionEvent(kind="session_cleared"))
        return await self._silence(self._next_generation(), hard=True)

    async def hush(self) -> OperationResult:
        """Drop to silence while the runtime scheduler keeps running."""
        self._clear_state(self._next_ticket())
        self._last_program = None
        self._last_error = None
        _emit_event(self._hooks, SessionEvent(kind="session_cleared"))
        return await self._silence(self._next_generation(), hard=False)

    def set_tempo(self, percent: float) -> OperationResult:
        try:
            cps = self.tempo.set_percent(percent)
        except InvalidInputError as exc:
            return self._fail(exc, "input")
        except CollaboratorError as exc:
            return self._fail(exc, "collaborator")
        if cps is not None:
            _emit_event(self._hooks, SessionEvent(kind="tempo_changed", cps=cps))
        return OperationResult(ok=True)

    def _clear_state(self, ticket: int) -> None:
        self._store.clear()
        self._base_tempos.clear()
        self._touched.clear()
        self._cleared = max(self._cleared, ticket)
        self._latest_applied = max(self._latest_applied, ticket)
        self.tempo.reset()

    def _next_ticket(self) -> int:
        self._tickets += 1
        return self._tickets

    def _mark(self, track_id: str, ticket: int) -> None:
        self._touched[track_id] = max(self._touched.get(track_id, 0), ticket)
        self._latest_applied = max(self._latest_applied, ticket)

    def _superseded(self, ticket: int, track_id: str, exclusive: bool) -> bool:
        if exclusive:
            return self._latest_applied > ticket
        return self._cleared > ticket or self._touched.get(track_id, 0) > ticket

    def _dropped(self, ticket: int, track_id: str) -> OperationResult:
        _LOGGER.debug(
            "Dropping play of %s (call %d); a newer call already applied", track_id, ticket
        )
        _emit_event(self._hooks, SessionEvent(kind="stale_result", track_id=track_id))
        return OperationResult(ok=True, stale=True)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    async def _resume(self) -> None:
        try:
            await self._runtime.resume()
        except Exception as exc:
            raise RuntimeUnavailableError(f"Failed to start audio runtime: {exc}") from exc

    async def _preload(self, sample_url: str) -> None:
        _LOGGER.info("Preloading sample %s", sample_url)
        try:
            await self._runtime.preload_sample(sample_url)
        except Exception as exc:
            raise SamplePreloadError(f"Failed to load sample: {exc}") from exc

    async def _rebuild(self, directive: str | None = None) -> OperationResult:
        generation = self._next_generation()
        program = self.combined_program(directive)
        if program is None:
            return await self._silence(generation, hard=False)

        _LOGGER.debug("Combined program (generation %d):\n%s", generation, program)
        self._last_program = program
        try:
            await self._runtime.evaluate(program, True, True)
        except Exception as exc:
            error = EvaluationError(f"Program failed to evaluate: {exc}")
            if generation != self._generation:
                return self._stale(generation, program, error)
            # The store keeps the failing fragment so it can be corrected.
            return self._fail(error, "evaluation", program=program)
        if generation != self._generation:
            return self._stale(generation, program)
        self._last_error = None
        _emit_event(
            self._hooks,
            SessionEvent(kind="program_evaluated", program=program, generation=generation),
        )
        return OperationResult(ok=True, program=program)

    async def _silence(self, generation: int, *, hard: bool) -> OperationResult:
        try:
            await self._runtime.evaluate(SILENCE_PROGRAM, True, True)
            if hard:
                self._runtime.stop()
        except Exception as exc:
            error = EvaluationError(f"Failed to silence runtime: {exc}")
            if generation != self._generation:
                return self._stale(generation, SILENCE_PROGRAM, error)
            return self._fail(error, "evaluation", program=SILENCE_PROGRAM)
        if generation != self._generation:
            return self._stale(generation, SILENCE_PROGRAM)
        self._last_error = None
        _LOGGER.info("Session silenced")
        _emit_event(self._hooks, SessionEvent(kind="silenced", generation=generation))
        return OperationResult(ok=True, program=SILENCE_PROGRAM)

    def _stale(
        self,
        generation: int,
        program: str,
        error: StrudelBopError | None = None,
    ) -> OperationResult:
        _LOGGER.debug(
            "Discarding result of generation %d (current %d)%s",
            generation,
            self._generation,
            f": {error}" if error is not None else "",
        )
        _emit_event(
            self._hooks,
            SessionEvent(kind="stale_result", program=program, generation=generation, error=error),
        )
        return OperationResult(
            ok=error is None,
            program=program,
            error=str(error) if error is not None else None,
            error_kind="evaluation" if error is not None else None,
            stale=True,
        )

    def _fail(
        self,
        error: StrudelBopError,
        kind: ErrorKind,
        *,
        program: str | None = None,
    ) -> OperationResult:
        self._last_error = str(error)
        _LOGGER.warning("Session %s error: %s", kind, error, exc_info=debug_enabled())
        _emit_event(self._hooks, SessionEvent(kind="error", error=error))
        return OperationResult(ok=False, program=program, error=str(error), error_kind=kind)


class SessionContext:
    """Explicit handle bundling the one runtime and the engine that guards it."""

    def __init__(
        self,
        runtime: EvaluationRuntime,
        *,
        config: AppConfig | None = None,
        hooks: SessionHooks | None = None,
        tempo_percent: float = DEFAULT_TEMPO_PERCENT,
    ) -> None:
        self.runtime = runtime
        self.config = config or AppConfig.from_env()
        self.engine = SessionEngine(runtime, hooks=hooks, tempo_percent=tempo_percent)

    @property
    def tempo(self) -> TempoController:
        return self.engine.tempo
