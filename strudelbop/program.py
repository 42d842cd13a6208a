"""Text-level composition of the combined program.

Fragments are treated as opaque strings; the only things this module
recognises are a leading ``setcps(...)`` line and the ``stack(...)`` wrapper
it emits itself.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

SILENCE_PROGRAM = "hush()"
STACK_CALL = "stack"
TEMPO_CALL = "setcps"
_STATEMENT_SEPARATOR = ";\n"
_STACK_INDENT = "  "


class SplitFragment(NamedTuple):
    directive: str | None
    body: str


def format_tempo_directive(cps: float) -> str:
    return f"{TEMPO_CALL}({cps:.4f})"


def split_tempo_directive(fragment: str) -> SplitFragment:
    """Separate a leading ``setcps(...)`` line from the rest of a fragment."""

    text = fragment.strip()
    first, newline, rest = text.partition("\n")
    if not first.strip().startswith(f"{TEMPO_CALL}("):
        return SplitFragment(None, text)
    directive = first.strip().rstrip(";").rstrip()
    body = rest.strip() if newline else ""
    return SplitFragment(directive, body)


def combine_program(fragments: Iterable[str], directive: str | None = None) -> str | None:
    """Build the single program for all active fragments.

    Returns ``None`` when there is nothing to play; callers issue the
    silence command instead of evaluating an empty program.
    """

    items = list(fragments)
    if not items:
        return None
    if len(items) == 1:
        body = items[0]
    else:
        joined = f",\n{_STACK_INDENT}".join(f"({item})" for item in items)
        body = f"{STACK_CALL}(\n{_STACK_INDENT}{joined}\n)"
    if directive:
        return f"{directive}{_STATEMENT_SEPARATOR}{body}"
    return body
