"""Model-backed relevance analysis for the idle pass.

Best-effort: asks a small model which candidate tool outputs are obsolete.
Deduplication alone is a complete operating mode; this pass only runs when
`strategies.on_idle.enabled` is set.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from contextprune.config.schema import OnIdleConfig
from contextprune.core.llm import LLMProvider, LiteLLMProvider, Message, Role
from contextprune.errors import AnalysisError
from contextprune.formats.base import PRUNED_CONTENT_MESSAGE
from contextprune.logging import get_logger
from contextprune.prompts import ANALYSIS_TEMPLATE

log = get_logger("analysis")

ProviderFactory = Callable[[str], LLMProvider]


@dataclass
class AnalysisResult:
    """Outcome of one analysis call."""

    pruned_ids: list[str] = field(default_factory=list)
    reasoning: str = ""
    model: str = ""


def minimize_messages(
    messages: Sequence[dict[str, Any]],
    pruned_ids: Iterable[str] = (),
) -> list[dict[str, Any]]:
    """Reduce a transcript to what the analyzer needs.

    Keeps roles, text and tool calls; already-pruned outputs are replaced
    with the placeholder so the analyzer never sees them.
    """
    pruned = {tool_id.lower() for tool_id in pruned_ids}
    minimized = []
    for msg in messages:
        info = msg.get("info") if isinstance(msg.get("info"), dict) else {}
        parts = []
        for part in msg.get("parts") or []:
            if not isinstance(part, dict):
                continue
            if part.get("type") == "text" and part.get("text"):
                parts.append({"type": "text", "text": part["text"]})
            elif part.get("type") == "tool" and part.get("callID"):
                call_id = str(part["callID"]).lower()
                state = part.get("state") if isinstance(part.get("state"), dict) else {}
                entry: dict[str, Any] = {
                    "type": "tool",
                    "callID": call_id,
                    "tool": part.get("tool"),
                    "input": state.get("input"),
                }
                if call_id in pruned:
                    entry["output"] = PRUNED_CONTENT_MESSAGE
                elif state.get("status") == "completed":
                    entry["output"] = state.get("output")
                elif state.get("status") == "error":
                    entry["error"] = state.get("error")
                parts.append(entry)
        minimized.append({"role": info.get("role"), "parts": parts})
    return minimized


def build_analysis_prompt(
    candidate_ids: Sequence[str],
    messages: Sequence[dict[str, Any]],
    protected_tools: Sequence[str],
) -> str:
    protected_text = ""
    if protected_tools:
        protected_text = f"- NEVER prune the following protected tools: {', '.join(protected_tools)}\n"
    return ANALYSIS_TEMPLATE.format(
        protected_tools=protected_text,
        available_ids=", ".join(candidate_ids),
        history=json.dumps(list(messages), indent=2, default=str),
    )


def parse_analysis_response(text: str, candidate_ids: Sequence[str]) -> AnalysisResult:
    """Pull the first JSON object out of a model reply.

    Only IDs from the candidate list are accepted.

    Raises:
        AnalysisError: If no JSON object with a pruned_tool_call_ids list is found.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict) and isinstance(parsed.get("pruned_tool_call_ids"), list):
            allowed = {tool_id.lower() for tool_id in candidate_ids}
            ids = []
            for value in parsed["pruned_tool_call_ids"]:
                key = str(value).lower()
                if key in allowed and key not in ids:
                    ids.append(key)
            return AnalysisResult(pruned_ids=ids, reasoning=str(parsed.get("reasoning", "")))
        start = text.find("{", start + 1)

    raise AnalysisError("Model reply did not contain a pruned_tool_call_ids object")


class LLMAnalyzer:
    """Runs the analysis prompt against the configured or session model."""

    name = "llm-analysis"

    def __init__(
        self,
        config: OnIdleConfig,
        provider_factory: ProviderFactory | None = None,
    ) -> None:
        self._config = config
        self._provider_factory = provider_factory or LiteLLMProvider

    def select_model(self, session_model: str | None = None) -> str:
        """The configured model, else the session's model unless strict.

        Raises:
            AnalysisError: If no model can be selected.
        """
        if self._config.model:
            return self._config.model
        if session_model and not self._config.strict_model_selection:
            return session_model
        raise AnalysisError("No model available for analysis")

    async def analyze(
        self,
        candidate_ids: Sequence[str],
        messages: Sequence[dict[str, Any]],
        protected_tools: Sequence[str],
        *,
        pruned_ids: Iterable[str] = (),
        session_model: str | None = None,
    ) -> AnalysisResult:
        """Ask the model which candidates are obsolete.

        Raises:
            AnalysisError: On model selection, call or parse failure.
        """
        if not candidate_ids:
            return AnalysisResult()

        model = self.select_model(session_model)
        prompt = build_analysis_prompt(
            candidate_ids, minimize_messages(messages, pruned_ids), protected_tools
        )

        try:
            provider = self._provider_factory(model)
            completion = await provider.complete([Message(Role.USER, prompt)])
        except Exception as e:
            raise AnalysisError(f"Analysis call to {model} failed: {e}") from e

        result = parse_analysis_response(completion.content, candidate_ids)
        result.model = model
        log.info(
            "Analysis with %s selected %d of %d candidates",
            model, len(result.pruned_ids), len(candidate_ids),
        )
        return result
