"""Pruning strategy contract."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from contextprune.state.session import ToolCallRecord


@dataclass
class StrategyResult:
    """IDs a strategy decided to prune.

    Attributes:
        pruned_ids: Lowercased tool-call IDs, in candidate order
        details: Strategy-specific notes keyed by pruned ID (e.g. the ID kept
            in its place), used for logging
    """

    pruned_ids: list[str] = field(default_factory=list)
    details: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class PruningStrategy(Protocol):
    """A pure decision over cached tool metadata.

    Strategies never mutate state; the caller applies their results.
    """

    name: str

    def detect(
        self,
        metadata: Mapping[str, ToolCallRecord],
        candidate_ids: Sequence[str],
        protected_tools: set[str],
    ) -> StrategyResult:
        ...
