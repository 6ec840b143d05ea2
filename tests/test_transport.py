"""Tests for request interception."""

from __future__ import annotations

import json

import httpx

from contextprune.config import Config
from contextprune.formats import PRUNED_CONTENT_MESSAGE
from contextprune.pruning import RequestHandler
from contextprune.state import StateStore
from contextprune.transport import SESSION_HEADER, PruningTransport, RequestRewriter
from tests.utils import chat_body


def make_rewriter(enabled: bool = True) -> tuple[RequestRewriter, StateStore]:
    config = Config()
    config.strategies.prune_tool.enabled = False
    store = StateStore()
    store.get("s1").add_pruned(["call_1"])
    return RequestRewriter(RequestHandler(store, config), enabled=enabled), store


def body() -> dict:
    return chat_body(("call_1", "read", {"filePath": "a.py"}, "secret"))


class Capture:
    """Inner transport handler that records what it was sent."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json={"ok": True})


class TestRequestRewriter:
    """Tests for body-level rewriting."""

    async def test_rewrite_dict(self) -> None:
        rewriter, _ = make_rewriter()
        result = await rewriter.rewrite(body(), session_id="s1")
        assert result.modified
        assert result.body["messages"][2]["content"] == PRUNED_CONTENT_MESSAGE

    async def test_disabled(self) -> None:
        rewriter, _ = make_rewriter(enabled=False)
        original = body()
        result = await rewriter.rewrite(original, session_id="s1")
        assert not result.modified
        assert result.body is original

    async def test_rewrite_bytes(self) -> None:
        rewriter, _ = make_rewriter()
        raw = json.dumps(body()).encode()
        rewritten = await rewriter.rewrite_bytes(raw, session_id="s1")
        assert isinstance(rewritten, bytes)
        assert json.loads(rewritten)["messages"][2]["content"] == PRUNED_CONTENT_MESSAGE

    async def test_rewrite_str_stays_str(self) -> None:
        rewriter, _ = make_rewriter()
        rewritten = await rewriter.rewrite_bytes(json.dumps(body()), session_id="s1")
        assert isinstance(rewritten, str)

    async def test_non_json_returned_as_is(self) -> None:
        rewriter, _ = make_rewriter()
        raw = b"plain text, not json"
        assert await rewriter.rewrite_bytes(raw, session_id="s1") is raw

    async def test_unmodified_returns_raw(self) -> None:
        rewriter, _ = make_rewriter()
        raw = json.dumps(chat_body()).encode()
        assert await rewriter.rewrite_bytes(raw, session_id="s1") is raw


class TestPruningTransport:
    """Tests for the httpx transport."""

    async def test_rewrites_json_post(self) -> None:
        rewriter, _ = make_rewriter()
        capture = Capture()
        transport = PruningTransport(httpx.MockTransport(capture), rewriter)

        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                "https://api.openai.com/v1/chat/completions",
                json=body(),
                headers={SESSION_HEADER: "s1"},
            )

        assert response.status_code == 200
        sent = capture.requests[0]
        payload = json.loads(sent.content)
        assert payload["messages"][2]["content"] == PRUNED_CONTENT_MESSAGE
        assert int(sent.headers["content-length"]) == len(sent.content)
        assert sent.headers[SESSION_HEADER] == "s1"

    async def test_other_requests_untouched(self) -> None:
        rewriter, _ = make_rewriter()
        capture = Capture()
        transport = PruningTransport(httpx.MockTransport(capture), rewriter)
        raw = json.dumps(body()).encode()

        async with httpx.AsyncClient(transport=transport) as client:
            await client.get("https://api.openai.com/v1/models", headers={SESSION_HEADER: "s1"})
            await client.post(
                "https://api.openai.com/v1/files",
                content=raw,
                headers={"content-type": "application/octet-stream", SESSION_HEADER: "s1"},
            )

        assert capture.requests[0].method == "GET"
        assert capture.requests[1].content == raw

    async def test_session_from_last_seen_without_header(self) -> None:
        rewriter, store = make_rewriter()
        store.last_seen_session_id = "s1"
        capture = Capture()
        transport = PruningTransport(httpx.MockTransport(capture), rewriter)

        async with httpx.AsyncClient(transport=transport) as client:
            await client.post("https://api.anthropic.com/v1/messages", json=body())

        payload = json.loads(capture.requests[0].content)
        assert payload["messages"][2]["content"] == PRUNED_CONTENT_MESSAGE
