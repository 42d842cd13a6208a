from __future__ import annotations

import logging
import math
from typing import Protocol

from .errors import InvalidInputError
from .program import format_tempo_directive

_LOGGER = logging.getLogger("strudelbop.tempo")

BEATS_PER_CYCLE = 4
SECONDS_PER_MINUTE = 60
DEFAULT_BASE_TEMPO = 120.0
DEFAULT_TEMPO_PERCENT = 100.0
TEMPO_PERCENT_MIN = 50.0
TEMPO_PERCENT_MAX = 150.0


class TempoTarget(Protocol):
    def reference_base_tempo(self) -> float | None: ...

    def push_tempo(self, cps: float) -> None: ...


def bpm_to_cps(bpm: float) -> float:
    return bpm / (BEATS_PER_CYCLE * SECONDS_PER_MINUTE)


def validate_percent(percent: float) -> float:
    if not math.isfinite(percent):
        raise InvalidInputError(f"Tempo percentage must be a number, got {percent!r}")
    if not TEMPO_PERCENT_MIN <= percent <= TEMPO_PERCENT_MAX:
        raise InvalidInputError(
            f"Tempo percentage must be between {TEMPO_PERCENT_MIN:g} and "
            f"{TEMPO_PERCENT_MAX:g}, got {percent:g}"
        )
    return float(percent)


class TempoController:
    """Maps a relative tempo percentage onto the runtime's cycles per second.

    The reference track's declared BPM is the 100% point. The resulting value
    goes straight to the runtime; the combined program text is untouched.
    """

    def __init__(self, target: TempoTarget, *, percent: float = DEFAULT_TEMPO_PERCENT) -> None:
        self._target = target
        self._percent = validate_percent(percent)
        self._cps: float | None = None

    @property
    def percent(self) -> float:
        return self._percent

    @property
    def cps(self) -> float | None:
        """Last absolute value pushed to the runtime."""
        return self._cps

    def cps_for(self, base_tempo: float, percent: float | None = None) -> float:
        if base_tempo <= 0:
            raise InvalidInputError(f"Base tempo must be positive, got {base_tempo:g}")
        scale = (self._percent if percent is None else percent) / 100
        return bpm_to_cps(base_tempo) * scale

    def directive_for(self, base_tempo: float) -> str:
        return format_tempo_directive(self.cps_for(base_tempo))

    def set_percent(self, percent: float) -> float | None:
        """Record ``percent`` and push the new cps if a reference track exists.

        Returns the pushed cps, or ``None`` when nothing is playing.
        """

        validated = validate_percent(percent)
        base_tempo = self._target.reference_base_tempo()
        if base_tempo is None:
            self._percent = validated
            _LOGGER.debug("Tempo set to %g%% with no active track; nothing pushed.", percent)
            return None
        cps = self.cps_for(base_tempo, validated)
        # A failed push leaves the previous percentage in place.
        self._target.push_tempo(cps)
        self._percent = validated
        self._cps = cps
        _LOGGER.info("Tempo %g%% of %g BPM -> %.4f cps", percent, base_tempo, cps)
        return cps

    def reset(self) -> None:
        self._cps = None
