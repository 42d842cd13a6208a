from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from pydantic import ValidationError

from .catalog import BUILTIN_PATTERNS
from .collection import PatternCollection
from .errors import InvalidInputError, PatternNotFoundError, StrudelBopError
from .grid import DEFAULT_GRID_SIZE, StepGrid, encode_grid, try_decode_grid
from .media import MediaService
from .params import PARAM_SPECS, extract_params, rewrite_param
from .session import OperationResult, SessionContext, SessionEngine
from .tracks import (
    PatternRecord,
    TrackSettings,
    build_track_code,
    export_active_code,
    record_from_generation,
    sample_to_record,
)

_LOGGER = logging.getLogger("strudelbop.deck")


class PatternGenerator(Protocol):
    async def generate(self, intent: str) -> str: ...


class Deck:
    """Tile-level controls on top of one session.

    Holds the playable records in display order and the mixer settings for
    each, and turns user actions into session operations.
    """

    def __init__(
        self,
        context: SessionContext,
        *,
        records: Iterable[PatternRecord] = BUILTIN_PATTERNS,
        collection: PatternCollection | None = None,
        media: MediaService | None = None,
        generator: PatternGenerator | None = None,
        multi_track: bool = True,
    ) -> None:
        self._context = context
        self._collection = collection
        self._media = media
        self._generator = generator
        self._records: dict[str, PatternRecord] = {}
        self._settings: dict[str, TrackSettings] = {}
        self.multi_track = multi_track
        for record in records:
            self.add_record(record)

    @property
    def engine(self) -> SessionEngine:
        return self._context.engine

    @property
    def records(self) -> tuple[PatternRecord, ...]:
        return tuple(self._records.values())

    @property
    def tempo_percent(self) -> float:
        return self.engine.tempo.percent

    def record(self, track_id: str) -> PatternRecord:
        try:
            return self._records[track_id]
        except KeyError as exc:
            raise PatternNotFoundError(f"Pattern not found: {track_id}") from exc

    def settings(self, track_id: str) -> TrackSettings:
        self.record(track_id)
        return self._settings[track_id]

    def active_records(self) -> list[PatternRecord]:
        return [self._records[i] for i in self.engine.active_ids if i in self._records]

    def track_code(self, track_id: str) -> str:
        return build_track_code(self.record(track_id), self.settings(track_id), self.tempo_percent)

    def sample_url(self, record: PatternRecord) -> str | None:
        if not record.is_sample or not record.sample_path:
            return None
        return self._context.config.sample_url(record.sample_path)

    def add_record(self, record: PatternRecord, *, persist: bool = False) -> PatternRecord:
        self._records[record.id] = record
        if record.id not in self._settings:
            config = self._context.config
            self._settings[record.id] = TrackSettings(
                volume=config.default_volume,
                reverb=config.default_reverb,
            )
        if persist:
            self._persist(record)
        return record

    def load_saved(self) -> int:
        """Merge downloaded samples and saved patterns; returns how many were added."""

        loaded: list[PatternRecord] = []
        if self._media is not None:
            loaded.extend(
                sample_to_record(sample.filename, sample.relative_path)
                for sample in self._media.list_samples()
            )
        if self._collection is not None:
            loaded.extend(self._collection.records())
        added = 0
        for record in loaded:
            if record.id in self._records:
                continue
            self.add_record(record)
            added += 1
        _LOGGER.info("Loaded %d saved patterns", added)
        return added

    async def play(self, track_id: str, *, exclusive: bool = False) -> OperationResult:
        record = self.record(track_id)
        return await self.engine.play_track(
            track_id,
            self.track_code(track_id),
            exclusive,
            self.sample_url(record),
            base_tempo=record.base_tempo,
        )

    async def toggle(self, track_id: str) -> OperationResult:
        if self.engine.is_track_active(track_id):
            return await self.engine.stop_track(track_id)
        return await self.play(track_id, exclusive=not self.multi_track)

    async def play_first(self) -> OperationResult:
        if self.engine.is_playing:
            return await self.engine.hush()
        if not self._records:
            return OperationResult(ok=False, error="No patterns to play", error_kind="input")
        return await self.play(next(iter(self._records)), exclusive=True)

    async def stop(self) -> OperationResult:
        return await self.engine.hush()

    def set_tempo(self, percent: float) -> OperationResult:
        return self.engine.set_tempo(percent)

    async def set_volume(self, track_id: str, volume: int) -> OperationResult:
        return await self._update_settings(track_id, volume=volume)

    async def set_reverb(self, track_id: str, reverb: int) -> OperationResult:
        return await self._update_settings(track_id, reverb=reverb)

    async def set_param(self, track_id: str, index: int, value: float) -> OperationResult:
        record = self.record(track_id)
        params = extract_params(record.fragment)
        if not 0 <= index < len(params):
            raise InvalidInputError(f"{track_id} has no parameter #{index}")
        spec = PARAM_SPECS[params[index].name]
        fragment = rewrite_param(record.fragment, index, spec.clamp(value))
        return await self.edit_code(track_id, fragment)

    async def edit_code(self, track_id: str, fragment: str) -> OperationResult:
        record = self.record(track_id).model_copy(update={"fragment": fragment})
        self._records[track_id] = record
        result = OperationResult(ok=True)
        if self.engine.is_track_active(track_id):
            result = await self.play(track_id)
        if record.is_ai:
            self._persist(record)
        return result

    def grid_for(self, track_id: str, size: int = DEFAULT_GRID_SIZE) -> StepGrid | None:
        record = self.record(track_id)
        return try_decode_grid(record.fragment, size, sample=record.is_sample)

    async def edit_grid(self, track_id: str, grid: StepGrid) -> OperationResult:
        return await self.edit_code(track_id, encode_grid(grid))

    async def generate(self, intent: str) -> PatternRecord:
        if self._generator is None:
            raise InvalidInputError("No pattern generator configured")
        fragment = await self._generator.generate(intent)
        record = record_from_generation(intent.strip(), fragment)
        return self.add_record(record, persist=True)

    async def download_sample(
        self,
        url: str,
        *,
        start: str | None = None,
        end: str | None = None,
        filename: str | None = None,
    ) -> PatternRecord:
        if self._media is None:
            raise InvalidInputError("No media service configured")
        sample = await self._media.download(url, start=start, end=end, filename=filename)
        return self.add_record(sample_to_record(sample.filename, sample.relative_path))

    async def delete(self, track_id: str) -> None:
        record = self.record(track_id)
        if self.engine.is_track_active(track_id):
            await self.engine.stop_track(track_id)
        del self._records[track_id]
        self._settings.pop(track_id, None)
        try:
            if record.is_ai and self._collection is not None:
                self._collection.remove(track_id)
            elif record.is_sample and self._media is not None and record.sample_path:
                self._media.delete_sample(record.sample_path.rsplit("/", 1)[-1])
        except StrudelBopError as exc:
            _LOGGER.warning("Failed to delete %s from storage: %s", track_id, exc, exc_info=True)

    def copy_code(self, track_id: str) -> str:
        return self.track_code(track_id)

    def copy_all(self) -> str:
        return export_active_code(
            (record, self.track_code(record.id)) for record in self.active_records()
        )

    async def _update_settings(self, track_id: str, **changes: int) -> OperationResult:
        current = self.settings(track_id)
        try:
            updated = TrackSettings.model_validate({**current.model_dump(), **changes})
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid mixer setting for {track_id}: {exc}") from exc
        self._settings[track_id] = updated
        if self.engine.is_track_active(track_id):
            return await self.play(track_id)
        return OperationResult(ok=True)

    def _persist(self, record: PatternRecord) -> None:
        if self._collection is None:
            return
        try:
            self._collection.add(record)
        except (OSError, StrudelBopError) as exc:
            _LOGGER.warning("Failed to save pattern %s: %s", record.id, exc, exc_info=True)
