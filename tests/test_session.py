from __future__ import annotations

import asyncio
import logging

import pytest

from strudelbop.program import SILENCE_PROGRAM
from strudelbop.runtime import RecordingRuntime
from strudelbop.session import SessionEngine, SessionEvent, SessionHooks

KICKS = 's("bd*4").gain(0.9)'
HATS = 's("hh*8").gain(0.6)'
CLAPS = 's("~ cp ~ cp")'


class _FlakyRuntime(RecordingRuntime):
    def __init__(
        self,
        *,
        fail_resume: bool = False,
        fail_preload: bool = False,
        fail_evaluate: bool = False,
    ) -> None:
        super().__init__()
        self.fail_resume = fail_resume
        self.fail_preload = fail_preload
        self.fail_evaluate = fail_evaluate

    async def resume(self) -> None:
        if self.fail_resume:
            raise RuntimeError("audio context blocked")
        await super().resume()

    async def preload_sample(self, source: str) -> None:
        if self.fail_preload:
            raise RuntimeError("404 not found")
        await super().preload_sample(source)

    async def evaluate(self, text: str, reset_all: bool, hush_first: bool) -> None:
        if self.fail_evaluate and text != SILENCE_PROGRAM:
            raise SyntaxError("unexpected token")
        await super().evaluate(text, reset_all, hush_first)


class _GatedRuntime(RecordingRuntime):
    """Blocks the first evaluation until the gate opens."""

    def __init__(self, gate: asyncio.Event) -> None:
        super().__init__()
        self._gate = gate
        self._blocked_once = False

    async def evaluate(self, text: str, reset_all: bool, hush_first: bool) -> None:
        if not self._blocked_once:
            self._blocked_once = True
            await self._gate.wait()
        await super().evaluate(text, reset_all, hush_first)


@pytest.mark.asyncio
async def test_single_track_program_is_fragment_with_hoisted_tempo() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)

    result = await engine.play_track("kicks", f"setcps(0.5000)\n{KICKS}")

    assert result.ok
    assert result.program == f"setcps(0.5000);\n{KICKS}"
    assert runtime.evaluated_programs() == [result.program]
    evaluate = [call for call in runtime.calls if call.kind == "evaluate"][0]
    assert evaluate.reset_all is True
    assert evaluate.hush_first is True
    assert engine.is_playing


@pytest.mark.asyncio
async def test_multiple_tracks_are_stacked_in_insertion_order() -> None:
    engine = SessionEngine(RecordingRuntime())

    await engine.play_track("kicks", KICKS)
    result = await engine.play_track("hats", HATS)

    assert result.program == f"stack(\n  ({KICKS}),\n  ({HATS})\n)"
    assert engine.active_ids == ("kicks", "hats")


@pytest.mark.asyncio
async def test_same_final_state_gives_same_program() -> None:
    first = SessionEngine(RecordingRuntime())
    await first.play_track("kicks", KICKS)
    await first.play_track("hats", HATS)

    second = SessionEngine(RecordingRuntime())
    await second.play_track("kicks", 's("bd*2")')
    await second.play_track("claps", CLAPS)
    await second.play_track("hats", 's("hh*16")')
    await second.stop_track("claps")
    await second.play_track("kicks", KICKS)
    await second.play_track("hats", HATS)

    assert first.active_ids == second.active_ids
    assert first.combined_program() == second.combined_program()
    assert first.last_program == second.last_program


@pytest.mark.asyncio
async def test_stopping_last_track_issues_silence() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)
    await engine.play_track("kicks", KICKS)
    await engine.play_track("hats", HATS)

    remaining = await engine.stop_track("hats")
    assert remaining.program == KICKS

    result = await engine.stop_track("kicks")

    assert result.ok
    assert result.program == SILENCE_PROGRAM
    assert runtime.evaluated_programs()[-1] == SILENCE_PROGRAM
    assert not engine.is_playing
    assert engine.active_ids == ()


@pytest.mark.asyncio
async def test_exclusive_play_replaces_all_tracks() -> None:
    engine = SessionEngine(RecordingRuntime())
    await engine.play_track("a", KICKS)
    await engine.play_track("b", HATS)

    result = await engine.play_track("c", CLAPS, exclusive=True)

    assert engine.active_ids == ("c",)
    assert result.program == CLAPS


@pytest.mark.asyncio
async def test_tempo_change_only_touches_runtime_cps() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)
    await engine.play_track("kicks", KICKS, base_tempo=120)
    await engine.play_track("hats", HATS, base_tempo=170)
    program = engine.combined_program()
    evaluations = len(runtime.evaluated_programs())

    result = engine.set_tempo(150)

    assert result.ok
    assert engine.combined_program() == program
    assert len(runtime.evaluated_programs()) == evaluations
    assert runtime.cps == pytest.approx(120 / 240 * 1.5)
    assert engine.global_tempo_cps == pytest.approx(0.75)


@pytest.mark.asyncio
async def test_tempo_without_active_tracks_is_recorded_only() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)

    result = engine.set_tempo(80)

    assert result.ok
    assert engine.tempo.percent == 80
    assert runtime.cps is None


@pytest.mark.asyncio
async def test_tempo_out_of_range_is_input_error() -> None:
    engine = SessionEngine(RecordingRuntime())

    result = engine.set_tempo(400)

    assert not result.ok
    assert result.error_kind == "input"
    assert engine.tempo.percent == 100


@pytest.mark.asyncio
async def test_tempo_directive_prefixes_only_the_play_that_supplied_it() -> None:
    engine = SessionEngine(RecordingRuntime())
    await engine.play_track("kicks", f"setcps(0.5000)\n{KICKS}")
    result = await engine.play_track("hats", f"setcps(0.7083)\n{HATS}")

    assert result.program is not None
    assert result.program.startswith("setcps(0.7083);\nstack(")
    assert result.program.count("setcps(") == 1

    after_stop = await engine.stop_track("hats")
    assert after_stop.program == KICKS


@pytest.mark.asyncio
async def test_stop_rebuild_keeps_tempo_slider_value() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)
    await engine.play_track("kicks", f"setcps(0.5000)\n{KICKS}")
    await engine.play_track("hats", f"setcps(0.5000)\n{HATS}")
    engine.set_tempo(150)
    assert runtime.cps == pytest.approx(0.75)

    result = await engine.stop_track("hats")

    assert result.program == KICKS
    assert "setcps(" not in runtime.evaluated_programs()[-1]
    assert runtime.cps == pytest.approx(0.75)
    assert engine.tempo.percent == 150


class _GatedPreloadRuntime(RecordingRuntime):
    def __init__(self, gate: asyncio.Event) -> None:
        super().__init__()
        self._gate = gate

    async def preload_sample(self, source: str) -> None:
        await self._gate.wait()
        await super().preload_sample(source)


@pytest.mark.asyncio
async def test_slow_preload_does_not_undo_newer_exclusive_play() -> None:
    gate = asyncio.Event()
    runtime = _GatedPreloadRuntime(gate)
    engine = SessionEngine(runtime)

    slow = asyncio.create_task(
        engine.play_track("loop", 's("_smp")', False, "http://localhost:3001/samples/loop.mp3")
    )
    await asyncio.sleep(0)
    newer = await engine.play_track("claps", CLAPS, exclusive=True)
    gate.set()
    late = await slow

    assert newer.ok and not newer.stale
    assert late.stale
    assert engine.active_ids == ("claps",)
    assert runtime.evaluated_programs() == [CLAPS]


@pytest.mark.asyncio
async def test_slow_play_does_not_revive_stopped_track() -> None:
    gate = asyncio.Event()
    engine = SessionEngine(_GatedPreloadRuntime(gate))

    slow = asyncio.create_task(
        engine.play_track("loop", 's("_smp")', False, "http://localhost:3001/samples/loop.mp3")
    )
    await asyncio.sleep(0)
    await engine.play_track("kicks", KICKS)
    await engine.stop_track("loop")
    gate.set()
    late = await slow

    assert late.stale
    assert engine.active_ids == ("kicks",)


@pytest.mark.asyncio
async def test_preload_runs_before_evaluation() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)

    result = await engine.play_track(
        "sample-loop",
        's("_smp").loopAt(4)',
        sample_url="http://localhost:3001/samples/loop.mp3",
    )

    assert result.ok
    assert [call.kind for call in runtime.calls] == ["resume", "preload_sample", "evaluate"]
    assert runtime.loaded_samples == ["http://localhost:3001/samples/loop.mp3"]


@pytest.mark.asyncio
async def test_preload_failure_leaves_state_untouched() -> None:
    runtime = _FlakyRuntime()
    engine = SessionEngine(runtime)
    await engine.play_track("kicks", KICKS)
    runtime.fail_preload = True

    result = await engine.play_track(
        "sample-loop",
        's("_smp").loopAt(4)',
        exclusive=True,
        sample_url="http://localhost:3001/samples/missing.mp3",
    )

    assert not result.ok
    assert result.error_kind == "collaborator"
    assert result.error is not None and "Failed to load sample" in result.error
    assert engine.active_ids == ("kicks",)
    assert runtime.evaluated_programs() == [KICKS]
    assert engine.last_error == result.error


@pytest.mark.asyncio
async def test_resume_failure_is_reported() -> None:
    engine = SessionEngine(_FlakyRuntime(fail_resume=True))

    result = await engine.play_track("kicks", KICKS)

    assert not result.ok
    assert result.error_kind == "collaborator"
    assert engine.active_ids == ()


@pytest.mark.asyncio
async def test_evaluation_failure_keeps_fragment_for_correction() -> None:
    runtime = _FlakyRuntime(fail_evaluate=True)
    engine = SessionEngine(runtime)

    result = await engine.play_track("kicks", 's("bd*4").gain(')

    assert not result.ok
    assert result.error_kind == "evaluation"
    assert engine.store.get("kicks") == 's("bd*4").gain('
    assert engine.last_error is not None

    runtime.fail_evaluate = False
    fixed = await engine.play_track("kicks", KICKS)
    assert fixed.ok
    assert engine.last_error is None


@pytest.mark.asyncio
async def test_missing_input_is_rejected_without_runtime_calls() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)

    empty = await engine.play_track("kicks", "   ")
    no_id = await engine.play_track("", KICKS)
    tempo_only = await engine.play_track("kicks", "setcps(0.5)")

    for result in (empty, no_id, tempo_only):
        assert not result.ok
        assert result.error_kind == "input"
    assert runtime.calls == []


@pytest.mark.asyncio
async def test_stale_evaluation_is_flagged() -> None:
    gate = asyncio.Event()
    runtime = _GatedRuntime(gate)
    engine = SessionEngine(runtime)

    slow = asyncio.create_task(engine.play_track("kicks", KICKS))
    await asyncio.sleep(0)
    fresh = await engine.play_track("hats", HATS)
    gate.set()
    stale = await slow

    assert fresh.ok and not fresh.stale
    assert stale.stale
    assert engine.active_ids == ("kicks", "hats")
    assert engine.last_program == fresh.program


@pytest.mark.asyncio
async def test_hush_and_stop_all_clear_session() -> None:
    runtime = RecordingRuntime()
    engine = SessionEngine(runtime)
    await engine.play_track("kicks", f"setcps(0.5000)\n{KICKS}")

    hushed = await engine.hush()
    assert hushed.ok
    assert engine.active_ids == ()
    assert runtime.evaluated_programs()[-1] == SILENCE_PROGRAM

    await engine.play_track("hats", HATS)
    stopped = await engine.stop_all()
    assert stopped.ok
    assert not engine.is_playing
    assert runtime.calls[-1].kind == "stop"


@pytest.mark.asyncio
async def test_hooks_receive_events() -> None:
    events: list[SessionEvent] = []
    started: list[str] = []
    errors: list[Exception] = []
    hooks = SessionHooks(
        on_event=events.append,
        on_track_started=started.append,
        on_error=errors.append,
    )
    engine = SessionEngine(_FlakyRuntime(fail_evaluate=True), hooks=hooks)

    await engine.play_track("kicks", KICKS)

    assert started == ["kicks"]
    assert [event.kind for event in events] == ["track_started", "error"]
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_failing_hook_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    def explode(track_id: str) -> None:
        raise RuntimeError(f"hook broke on {track_id}")

    caplog.set_level(logging.WARNING, logger="strudelbop.session")
    engine = SessionEngine(RecordingRuntime(), hooks=SessionHooks(on_track_started=explode))

    result = await engine.play_track("kicks", KICKS)

    assert result.ok
    assert any("hook broke on kicks" in record.getMessage() for record in caplog.records)
