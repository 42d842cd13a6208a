"""Step-grid view over simple single-sound fragments.

A fragment is grid-editable when it is one line of the form ``s("...")``
(optionally followed by method calls) whose pattern string is either a
uniform repetition (``hh*8``) or space-separated tokens with ``~`` as rest.
Anything else stays text-only; no lossy conversion is attempted.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import InvalidInputError
from .program import STACK_CALL

GRID_SIZES: tuple[int, ...] = (8, 16)
DEFAULT_GRID_SIZE = 16
DEFAULT_LOOP_CYCLES = 16
DEFAULT_SOUND = "bd"
SAMPLE_SOUND = "_smp"
REST = "~"

_SOUND_CALL = re.compile(r'^s\("(?P<pattern>[^"]+)"\)')
_UNIFORM = re.compile(r"^(?P<sound>\w+(?::\d+)?)\*(?P<count>\d+)$")
_TOKEN_SEQUENCE = re.compile(r"^[\w~:\s]+$")
_LOOP_CALL = re.compile(r"\.loopAt\((?P<cycles>\d+)\)")
_GAIN_CALL = ".gain("

PRESETS: Mapping[str, tuple[int, ...]] = MappingProxyType(
    {
        "4 on floor": (1, 0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0, 1, 0, 0, 0),
        "Every 2": (1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0),
        "Off-beat": (0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1, 0, 1),
        "Once": (1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0),
    }
)


class Modifier(BaseModel):
    """A call carried over verbatim when the grid is re-encoded."""

    name: str
    argument: str

    model_config = ConfigDict(frozen=True, extra="forbid")

    def render(self) -> str:
        return f".{self.name}({self.argument})"


class StepGrid(BaseModel):
    steps: tuple[bool, ...]
    sound: str = Field(min_length=1)
    loop_cycles: int | None = Field(default=None, gt=0)
    modifiers: tuple[Modifier, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("steps")
    @classmethod
    def _validate_size(cls, value: tuple[bool, ...]) -> tuple[bool, ...]:
        if len(value) not in GRID_SIZES:
            raise ValueError(f"grid must have {' or '.join(map(str, GRID_SIZES))} steps")
        return value

    @model_validator(mode="after")
    def _sample_has_no_modifiers(self) -> "StepGrid":
        if self.loop_cycles is not None and self.modifiers:
            raise ValueError("sample grids re-encode with loopAt only")
        return self

    @property
    def size(self) -> int:
        return len(self.steps)

    @property
    def is_sample(self) -> bool:
        return self.loop_cycles is not None

    def hits(self) -> tuple[int, ...]:
        return tuple(index for index, hit in enumerate(self.steps) if hit)


def _check_size(size: int) -> int:
    if size not in GRID_SIZES:
        raise InvalidInputError(f"Grid size must be one of {GRID_SIZES}, got {size}")
    return size


def _fit(steps: list[bool], size: int) -> tuple[bool, ...]:
    return tuple(steps[:size] + [False] * max(0, size - len(steps)))


def _pattern_string(fragment: str) -> str | None:
    trimmed = fragment.strip()
    if not trimmed or "\n" in trimmed or f"{STACK_CALL}(" in trimmed:
        return None
    match = _SOUND_CALL.match(trimmed)
    if match is None:
        return None
    return match.group("pattern")


def _gain_argument(fragment: str) -> str | None:
    """Return the full argument of the first ``.gain(...)`` call, nested calls included."""
    start = fragment.find(_GAIN_CALL)
    if start < 0:
        return None
    begin = start + len(_GAIN_CALL)
    depth = 1
    for index in range(begin, len(fragment)):
        char = fragment[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                argument = fragment[begin:index].strip()
                return argument or None
    return None


def is_grid_editable(fragment: str | None) -> bool:
    if not fragment:
        return False
    pattern = _pattern_string(fragment)
    if pattern is None:
        return False
    return bool(_UNIFORM.match(pattern) or _TOKEN_SEQUENCE.match(pattern))


def uniform_hits(count: int, size: int) -> tuple[bool, ...]:
    """Spread ``count`` hits evenly over ``size`` steps, first hit on step 0."""

    steps = [False] * size
    for i in range(count):
        steps[i * size // count] = True
    return tuple(steps)


def try_decode_grid(
    fragment: str,
    size: int = DEFAULT_GRID_SIZE,
    *,
    sample: bool = False,
) -> StepGrid | None:
    """Decode ``fragment`` into a grid, or ``None`` if it is not grid-editable."""

    _check_size(size)
    if not is_grid_editable(fragment):
        return None
    pattern = _pattern_string(fragment)
    assert pattern is not None

    uniform = _UNIFORM.match(pattern)
    if uniform is not None:
        sound = uniform.group("sound")
        steps = uniform_hits(int(uniform.group("count")), size)
    else:
        tokens = pattern.split()
        steps = _fit([token != REST for token in tokens], size)
        sound = next(
            (token for token in tokens if token != REST),
            SAMPLE_SOUND if sample else DEFAULT_SOUND,
        )

    if sample:
        loop = _LOOP_CALL.search(fragment)
        cycles = int(loop.group("cycles")) if loop else DEFAULT_LOOP_CYCLES
        return StepGrid(steps=steps, sound=sound, loop_cycles=max(cycles, 1))

    gain = _gain_argument(fragment)
    modifiers = (Modifier(name="gain", argument=gain),) if gain else ()
    return StepGrid(steps=steps, sound=sound, modifiers=modifiers)


def encode_grid(grid: StepGrid) -> str:
    sequence = " ".join(grid.sound if hit else REST for hit in grid.steps)
    code = f's("{sequence}")'
    if grid.loop_cycles is not None:
        return f"{code}.loopAt({grid.loop_cycles})"
    return code + "".join(modifier.render() for modifier in grid.modifiers)


def new_grid(
    sound: str,
    size: int = DEFAULT_GRID_SIZE,
    *,
    loop_cycles: int | None = None,
) -> StepGrid:
    """Grid with a single hit on the first step."""

    _check_size(size)
    steps = (True,) + (False,) * (size - 1)
    return StepGrid(steps=steps, sound=sound, loop_cycles=loop_cycles)


def resize_grid(grid: StepGrid, size: int) -> StepGrid:
    _check_size(size)
    return grid.model_copy(update={"steps": _fit(list(grid.steps), size)})


def with_loop_cycles(grid: StepGrid, cycles: int) -> StepGrid:
    if not grid.is_sample:
        raise InvalidInputError("Loop length only applies to sample grids")
    if cycles < 1:
        raise InvalidInputError(f"Loop length must be at least 1 cycle, got {cycles}")
    return grid.model_copy(update={"loop_cycles": cycles})


def toggle_step(grid: StepGrid, index: int) -> StepGrid:
    if not 0 <= index < grid.size:
        raise InvalidInputError(f"Step {index} is outside a {grid.size}-step grid")
    steps = list(grid.steps)
    steps[index] = not steps[index]
    return grid.model_copy(update={"steps": tuple(steps)})


def apply_preset(grid: StepGrid, name: str) -> StepGrid:
    try:
        preset = PRESETS[name]
    except KeyError as exc:
        raise InvalidInputError(f"Unknown grid preset: {name!r}") from exc
    return grid.model_copy(update={"steps": _fit([bool(v) for v in preset], grid.size)})


def clear_grid(grid: StepGrid) -> StepGrid:
    return grid.model_copy(update={"steps": (False,) * grid.size})
