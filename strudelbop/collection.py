from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from .errors import InvalidInputError, PatternNotFoundError
from .tracks import PatternRecord

_LOGGER = logging.getLogger("strudelbop.collection")
_RECORDS = TypeAdapter(list[PatternRecord])


class PatternCollection:
    """Saved patterns in a single JSON file, keyed by id."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def records(self) -> list[PatternRecord]:
        if not self._path.exists():
            return []
        try:
            return _RECORDS.validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as exc:
            _LOGGER.warning("Error loading patterns from %s: %s", self._path, exc, exc_info=True)
            return []

    def get(self, pattern_id: str) -> PatternRecord:
        for record in self.records():
            if record.id == pattern_id:
                return record
        raise PatternNotFoundError(f"Pattern not found: {pattern_id}")

    def add(self, record: PatternRecord) -> PatternRecord:
        """Insert ``record`` or replace the saved record with the same id."""

        if not record.id.strip():
            raise InvalidInputError("Pattern is required")
        records = self.records()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                break
        else:
            records.append(record)
        self._write(records)
        _LOGGER.info("Saved pattern %s", record.id)
        return record

    def remove(self, pattern_id: str) -> bool:
        if not self._path.exists():
            raise PatternNotFoundError(f"Pattern not found: {pattern_id}")
        records = self.records()
        kept = [record for record in records if record.id != pattern_id]
        self._write(kept)
        removed = len(kept) != len(records)
        _LOGGER.info("Removed pattern %s: %s", pattern_id, removed)
        return removed

    def _write(self, records: list[PatternRecord]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [record.model_dump(mode="json", by_alias=True) for record in records]
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
