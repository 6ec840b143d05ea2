"""Prompt texts injected into requests or sent to the analysis model.

Prompts are loaded from markdown files in this package.
"""

from importlib.resources import files

_PROMPTS_PKG = files("contextprune.prompts")


def load_prompt(name: str) -> str:
    """Load a prompt by name (without .md extension), trailing newline removed."""
    return _PROMPTS_PKG.joinpath(f"{name}.md").read_text(encoding="utf-8").rstrip("\n")


SYSTEM_REMINDER = load_prompt("system_reminder")
NUDGE_INSTRUCTION = load_prompt("nudge")
SYNTHETIC_INSTRUCTION = load_prompt("synthetic")
PRUNE_TOOL_DESCRIPTION = load_prompt("prune_tool")
# str.format template: protected_tools, available_ids, history
ANALYSIS_TEMPLATE = load_prompt("analysis")

__all__ = [
    "load_prompt",
    "SYSTEM_REMINDER",
    "NUDGE_INSTRUCTION",
    "SYNTHETIC_INSTRUCTION",
    "PRUNE_TOOL_DESCRIPTION",
    "ANALYSIS_TEMPLATE",
]
