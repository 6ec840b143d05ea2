"""Numeric aliases for provider tool-call IDs.

Maps small incrementing numbers (1, 2, 3...) to opaque provider call IDs
such as "call_abc123xyz" so the agent can address tool outputs compactly.
Numbers are never reassigned or reused, even after the output is pruned.
"""

from __future__ import annotations

from collections.abc import Iterable


class IdRegistry:
    """Bidirectional numeric <-> actual ID mapping for one session."""

    def __init__(self) -> None:
        self._numeric_to_actual: dict[int, str] = {}
        self._actual_to_numeric: dict[str, int] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._numeric_to_actual)

    @property
    def next_id(self) -> int:
        """The number the next new ID will receive."""
        return self._next_id

    def get_or_create(self, actual_id: str) -> int:
        """Return the numeric ID for actual_id, minting one if needed."""
        key = actual_id.lower()
        existing = self._actual_to_numeric.get(key)
        if existing is not None:
            return existing

        numeric_id = self._next_id
        self._next_id += 1
        self._numeric_to_actual[numeric_id] = key
        self._actual_to_numeric[key] = numeric_id
        return numeric_id

    def get_actual(self, numeric_id: int) -> str | None:
        return self._numeric_to_actual.get(numeric_id)

    def get_numeric(self, actual_id: str) -> int | None:
        return self._actual_to_numeric.get(actual_id.lower())

    def numeric_ids_for(self, actual_ids: Iterable[str]) -> list[int]:
        """Numeric IDs for the given actual IDs, skipping unmapped ones."""
        result = []
        for actual_id in actual_ids:
            numeric_id = self.get_numeric(actual_id)
            if numeric_id is not None:
                result.append(numeric_id)
        return result

    def mappings(self) -> dict[int, str]:
        """Copy of the numeric -> actual mapping."""
        return dict(self._numeric_to_actual)

    def replay(self, actual_ids: Iterable[str]) -> None:
        """Mint IDs for a transcript's call IDs in order.

        Already-mapped IDs keep their number, so replaying the same ordered
        transcript after a restart reproduces the same numbering.
        """
        for actual_id in actual_ids:
            self.get_or_create(actual_id)

    def load(self, mapping: dict[int, str]) -> None:
        """Restore a persisted mapping. Existing entries win on conflict."""
        for numeric_id in sorted(mapping):
            key = mapping[numeric_id].lower()
            if numeric_id in self._numeric_to_actual or key in self._actual_to_numeric:
                continue
            self._numeric_to_actual[numeric_id] = key
            self._actual_to_numeric[key] = numeric_id
            self._next_id = max(self._next_id, numeric_id + 1)
