"""Pruning pipeline: injection, request rewriting, idle pass and prune tool."""

from contextprune.pruning.display import describe_call, extract_parameter_key
from contextprune.pruning.handler import HandlerResult, RequestHandler
from contextprune.pruning.injector import (
    PrunableList,
    build_end_injection,
    build_prunable_tools_list,
    should_nudge,
)
from contextprune.pruning.janitor import Janitor, PruningResult
from contextprune.pruning.notification import (
    PruneSummary,
    build_prune_summary,
    send_prune_notification,
)
from contextprune.pruning.prune_tool import PRUNE_TOOL_NAME, PruneTool, PruneToolResult

__all__ = [
    "HandlerResult",
    "Janitor",
    "PRUNE_TOOL_NAME",
    "PrunableList",
    "PruneSummary",
    "PruneTool",
    "PruneToolResult",
    "PruningResult",
    "RequestHandler",
    "build_end_injection",
    "build_prunable_tools_list",
    "build_prune_summary",
    "describe_call",
    "extract_parameter_key",
    "send_prune_notification",
    "should_nudge",
]
