"""Pruning strategies and the runner that composes them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from contextprune.logging import get_logger
from contextprune.state.session import ToolCallRecord
from contextprune.strategies.base import PruningStrategy, StrategyResult
from contextprune.strategies.deduplication import (
    DeduplicationStrategy,
    call_signature,
    canonicalize,
)

log = get_logger("strategies")

# Run order matters: each strategy only sees what earlier ones left.
ALL_STRATEGIES: list[PruningStrategy] = [
    DeduplicationStrategy(),
]


@dataclass
class RunStrategiesResult:
    """Combined output of every strategy that pruned something.

    Attributes:
        pruned_ids: All pruned IDs, no duplicates, in discovery order
        by_strategy: Results keyed by strategy name
    """

    pruned_ids: list[str] = field(default_factory=list)
    by_strategy: dict[str, StrategyResult] = field(default_factory=dict)


def run_strategies(
    metadata: Mapping[str, ToolCallRecord],
    unpruned_ids: Sequence[str],
    protected_tools: Iterable[str],
    enabled: Iterable[str] | None = None,
    strategies: Sequence[PruningStrategy] | None = None,
) -> RunStrategiesResult:
    """Run the enabled strategies over the unpruned candidates.

    Args:
        metadata: Tool call ID -> cached call record.
        unpruned_ids: Candidate IDs in chronological order.
        protected_tools: Tool names that are never pruned (any case).
        enabled: Strategy names to run; all when None.
        strategies: Strategy pipeline; ALL_STRATEGIES when None.

    Returns:
        RunStrategiesResult. The remaining candidate set shrinks after each
        strategy, so no ID is claimed twice.
    """
    pipeline = list(strategies if strategies is not None else ALL_STRATEGIES)
    if enabled is not None:
        names = set(enabled)
        pipeline = [s for s in pipeline if s.name in names]

    protected = {tool.lower() for tool in protected_tools}
    remaining = [tool_id.lower() for tool_id in unpruned_ids]
    result = RunStrategiesResult()
    seen: set[str] = set()

    for strategy in pipeline:
        outcome = strategy.detect(metadata, remaining, protected)
        if not outcome.pruned_ids:
            continue
        result.by_strategy[strategy.name] = outcome
        claimed = {tool_id.lower() for tool_id in outcome.pruned_ids}
        for tool_id in outcome.pruned_ids:
            key = tool_id.lower()
            if key not in seen:
                seen.add(key)
                result.pruned_ids.append(key)
        remaining = [tool_id for tool_id in remaining if tool_id not in claimed]
        log.debug("%s pruned %d of %d candidates", strategy.name, len(claimed), len(remaining) + len(claimed))

    return result


__all__ = [
    "ALL_STRATEGIES",
    "DeduplicationStrategy",
    "PruningStrategy",
    "RunStrategiesResult",
    "StrategyResult",
    "call_signature",
    "canonicalize",
    "run_strategies",
]
