"""Shared test utilities and fakes for contextprune tests."""

from __future__ import annotations

import json
from typing import Any

from contextprune.core.llm.provider import CompletionResult, Message
from contextprune.host import Notification, SessionInfo


class FakeAccessor:
    """In-memory SessionAccessor.

    Args:
        sessions: Sessions in most-recent-first order
        transcripts: session_id -> transcript messages
        fail: Raise on every call when set
    """

    def __init__(
        self,
        sessions: list[SessionInfo] | None = None,
        transcripts: dict[str, list[dict[str, Any]]] | None = None,
        fail: bool = False,
    ) -> None:
        self.sessions = sessions or []
        self.transcripts = transcripts or {}
        self.fail = fail
        self.message_calls: list[tuple[str, int]] = []

    async def get(self, session_id: str) -> SessionInfo | None:
        if self.fail:
            raise RuntimeError("host unavailable")
        for info in self.sessions:
            if info.id == session_id:
                return info
        return None

    async def list(self) -> list[SessionInfo]:
        if self.fail:
            raise RuntimeError("host unavailable")
        return list(self.sessions)

    async def messages(self, session_id: str, limit: int) -> list[dict[str, Any]]:
        self.message_calls.append((session_id, limit))
        if self.fail:
            raise RuntimeError("host unavailable")
        return list(self.transcripts.get(session_id, []))[-limit:]


class RecordingNotifier:
    """Notifier that keeps everything it was asked to show."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, Notification]] = []
        self.fail = fail

    async def notify(self, session_id: str, notification: Notification) -> None:
        if self.fail:
            raise RuntimeError("toast failed")
        self.sent.append((session_id, notification))


class FakeProvider:
    """LLMProvider returning a canned reply."""

    def __init__(self, model: str, reply: str = "", error: Exception | None = None) -> None:
        self._model = model
        self.reply = reply
        self.error = error
        self.prompts: list[list[Message]] = []

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 4096,
        stop: list[str] | None = None,
    ) -> CompletionResult:
        self.prompts.append(messages)
        if self.error is not None:
            raise self.error
        return CompletionResult(content=self.reply, finish_reason="stop")


def tool_part(
    call_id: str,
    tool: str,
    params: dict[str, Any] | None = None,
    output: str = "ok",
    status: str = "completed",
) -> dict[str, Any]:
    """A transcript tool part."""
    state: dict[str, Any] = {"status": status, "input": params or {}}
    if status == "completed":
        state["output"] = output
    elif status == "error":
        state["error"] = output
    return {"type": "tool", "callID": call_id, "tool": tool, "state": state}


def user_message(text: str, agent: str = "build") -> dict[str, Any]:
    """A transcript user message."""
    return {"info": {"role": "user", "agent": agent}, "parts": [{"type": "text", "text": text}]}


def assistant_message(*parts: dict[str, Any], text: str | None = None) -> dict[str, Any]:
    """A transcript assistant message carrying the given tool parts."""
    all_parts = list(parts)
    if text:
        all_parts.insert(0, {"type": "text", "text": text})
    return {"info": {"role": "assistant"}, "parts": all_parts}


def chat_body(*calls: tuple[str, str, dict[str, Any], str], user_text: str = "go") -> dict[str, Any]:
    """An OpenAI chat body: one user turn, then (id, tool, args, output) call/result pairs."""
    messages: list[dict[str, Any]] = [{"role": "user", "content": user_text}]
    for call_id, tool, args, output in calls:
        messages.append({
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": call_id,
                "type": "function",
                "function": {"name": tool, "arguments": json.dumps(args)},
            }],
        })
        messages.append({"role": "tool", "tool_call_id": call_id, "content": output})
    return {"model": "gpt-4o", "messages": messages}


def gemini_body(*calls: tuple[str, dict[str, Any], str], user_text: str = "go") -> dict[str, Any]:
    """A Gemini body: one user turn, then (name, args, output) call/response pairs."""
    contents: list[dict[str, Any]] = [{"role": "user", "parts": [{"text": user_text}]}]
    for name, args, output in calls:
        contents.append({"role": "model", "parts": [{"functionCall": {"name": name, "args": args}}]})
        contents.append({
            "role": "user",
            "parts": [{"functionResponse": {"name": name, "response": {"output": output}}}],
        })
    return {"contents": contents}


def function_responses(body: dict[str, Any]) -> list[dict[str, Any]]:
    """Every functionResponse in a Gemini body, in order."""
    return [
        part["functionResponse"]
        for content in body["contents"]
        for part in content.get("parts", [])
        if isinstance(part, dict) and "functionResponse" in part
    ]
