"""Outbound request interception.

Two layers, both created by the host and handed to its provider clients:

- RequestRewriter: body-level hook (dict or raw JSON bytes in, rewritten out)
- PruningTransport: an httpx transport that wraps the real one and rewrites
  JSON POST bodies before delegating

Example:
    pruner = ContextPruner(accessor=accessor)
    client = httpx.AsyncClient(transport=pruner.transport(httpx.AsyncHTTPTransport()))
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from contextprune.logging import get_logger
from contextprune.pruning.handler import RequestHandler

log = get_logger("fetch")

# Request header a host may set to name the session a call belongs to
SESSION_HEADER = "x-contextprune-session"


@dataclass
class RewriteResult:
    """A possibly rewritten request body."""

    modified: bool
    body: Any


class RequestRewriter:
    """Rewrites outbound provider request bodies through a RequestHandler."""

    def __init__(self, handler: RequestHandler, *, enabled: bool = True) -> None:
        self._handler = handler
        self._enabled = enabled

    async def rewrite(
        self,
        body: Any,
        *,
        session_id: str | None = None,
        url: str = "",
    ) -> RewriteResult:
        """Rewrite a parsed request body. Never raises."""
        if not self._enabled:
            return RewriteResult(modified=False, body=body)
        result = await self._handler.handle(body, session_id=session_id, url=url)
        return RewriteResult(modified=result.modified, body=result.body)

    async def rewrite_bytes(
        self,
        raw: bytes | str,
        *,
        session_id: str | None = None,
        url: str = "",
    ) -> bytes | str:
        """Rewrite a JSON-encoded body.

        Returns:
            The re-serialized body when modified; otherwise `raw` itself,
            including when it is not JSON at all.
        """
        if not self._enabled or not raw:
            return raw
        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            return raw

        result = await self.rewrite(body, session_id=session_id, url=url)
        if not result.modified:
            return raw
        encoded = json.dumps(result.body, ensure_ascii=False)
        return encoded.encode("utf-8") if isinstance(raw, bytes) else encoded


def _is_json(request: httpx.Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return "json" in content_type.lower()


class PruningTransport(httpx.AsyncBaseTransport):
    """httpx transport that prunes JSON POST bodies, then delegates.

    Args:
        inner: The transport that actually sends requests.
        rewriter: Body rewriter.
        session_header: Header carrying the session ID, if the host sets one.
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        rewriter: RequestRewriter,
        *,
        session_header: str = SESSION_HEADER,
    ) -> None:
        self._inner = inner
        self._rewriter = rewriter
        self._session_header = session_header

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and _is_json(request):
            request = await self._rewrite_request(request)
        return await self._inner.handle_async_request(request)

    async def _rewrite_request(self, request: httpx.Request) -> httpx.Request:
        raw = await request.aread()
        session_id = request.headers.get(self._session_header) or None
        rewritten = await self._rewriter.rewrite_bytes(raw, session_id=session_id, url=str(request.url))
        if rewritten is raw:
            return request

        headers = httpx.Headers(request.headers)
        # httpx recomputes it from the new content
        headers.pop("content-length", None)
        log.debug("Forwarding rewritten body to %s (%d -> %d bytes)", request.url, len(raw), len(rewritten))
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=rewritten,
            extensions=request.extensions,
        )

    async def aclose(self) -> None:
        await self._inner.aclose()
