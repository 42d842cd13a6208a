"""Call-style numeric effect parameters inside a fragment.

Extraction is regex-level on purpose: the runtime owns the grammar, so only
``.name(number)`` calls with a literal numeric argument are recognised. The
results carry character offsets into the text they were extracted from and
must be recomputed after every edit.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping

from .errors import InvalidInputError

ParamName = Literal[
    "gain",
    "room",
    "delay",
    "cutoff",
    "resonance",
    "decay",
    "attack",
    "release",
    "pan",
    "speed",
    "fast",
    "slow",
]


@dataclass(frozen=True, slots=True)
class ParamSpec:
    """Slider range for one effect."""

    name: ParamName
    minimum: float
    maximum: float
    step: float
    label: str

    def clamp(self, value: float) -> float:
        return min(max(value, self.minimum), self.maximum)

    def snap(self, value: float) -> float:
        steps = round((self.clamp(value) - self.minimum) / self.step)
        return self.clamp(round(self.minimum + steps * self.step, 10))


PARAM_SPECS: Mapping[str, ParamSpec] = MappingProxyType(
    {
        "gain": ParamSpec("gain", 0.0, 1.0, 0.01, "Gain"),
        "room": ParamSpec("room", 0.0, 1.0, 0.01, "Room"),
        "delay": ParamSpec("delay", 0.0, 1.0, 0.01, "Delay"),
        "cutoff": ParamSpec("cutoff", 100.0, 5000.0, 50.0, "Cutoff"),
        "resonance": ParamSpec("resonance", 0.0, 30.0, 0.5, "Resonance"),
        "decay": ParamSpec("decay", 0.0, 2.0, 0.01, "Decay"),
        "attack": ParamSpec("attack", 0.0, 2.0, 0.01, "Attack"),
        "release": ParamSpec("release", 0.0, 2.0, 0.01, "Release"),
        "pan": ParamSpec("pan", -1.0, 1.0, 0.1, "Pan"),
        "speed": ParamSpec("speed", 0.25, 4.0, 0.25, "Speed"),
        "fast": ParamSpec("fast", 0.25, 4.0, 0.25, "Fast"),
        "slow": ParamSpec("slow", 0.25, 4.0, 0.25, "Slow"),
    }
)

_CALL_PATTERN = re.compile(r"\.(?P<name>\w+)\((?P<value>-?(?:\d+(?:\.\d*)?|\.\d+))\)")


@dataclass(frozen=True, slots=True)
class ExtractedParam:
    name: ParamName
    value: float
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def spec(self) -> ParamSpec:
        return PARAM_SPECS[self.name]


def extract_params(fragment: str) -> list[ExtractedParam]:
    """Return recognised parameter calls in source order."""

    params: list[ExtractedParam] = []
    for match in _CALL_PATTERN.finditer(fragment):
        name = match.group("name")
        if name not in PARAM_SPECS:
            continue
        params.append(
            ExtractedParam(
                name=PARAM_SPECS[name].name,
                value=float(match.group("value")),
                offset=match.start(),
                length=match.end() - match.start(),
            )
        )
    return params


def format_value(value: float) -> str:
    if not math.isfinite(value):
        raise InvalidInputError(f"Parameter value must be finite, got {value!r}")
    if float(value).is_integer():
        return str(int(value))
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def rewrite_param(fragment: str, index: int, value: float) -> str:
    """Replace the argument of the ``index``-th recognised call.

    Only that call's span changes; an index past the end leaves the fragment
    as it was.
    """

    params = extract_params(fragment)
    if not 0 <= index < len(params):
        return fragment
    param = params[index]
    replacement = f".{param.name}({format_value(value)})"
    return fragment[: param.offset] + replacement + fragment[param.end :]
