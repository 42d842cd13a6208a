from __future__ import annotations

from collections.abc import ItemsView, Iterator, KeysView, ValuesView


class PatternStore:
    """Ordered mapping of track id to program fragment.

    Replacing the fragment of a known id keeps its original position; new ids
    are appended. Removing an unknown id is a no-op.
    """

    def __init__(self) -> None:
        self._fragments: dict[str, str] = {}

    def set_fragment(self, track_id: str, text: str) -> None:
        self._fragments[track_id] = text

    def remove_fragment(self, track_id: str) -> None:
        self._fragments.pop(track_id, None)

    def clear(self) -> None:
        self._fragments.clear()

    def get(self, track_id: str) -> str | None:
        return self._fragments.get(track_id)

    def values(self) -> ValuesView[str]:
        # A live view: every iteration sees the current contents.
        return self._fragments.values()

    def ids(self) -> KeysView[str]:
        return self._fragments.keys()

    def items(self) -> ItemsView[str, str]:
        return self._fragments.items()

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._fragments

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[str]:
        return iter(self._fragments)

    def __repr__(self) -> str:
        return f"PatternStore({list(self._fragments)!r})"
