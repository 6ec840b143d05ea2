"""Protocols for the host collaborators contextprune depends on.

The host owns sessions, transcripts and user-facing notifications. These
protocols are the only contract between the host and the pruning layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol, runtime_checkable

from contextprune.logging import get_logger

log = get_logger("notify")

NotificationVariant = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Host session summary.

    Attributes:
        id: Opaque session identifier
        parent_id: Parent session reference; present means subagent
        title: Human-readable session name, used when persisting state
    """

    id: str
    parent_id: str | None = None
    title: str | None = None

    @property
    def is_subagent(self) -> bool:
        return bool(self.parent_id)


@dataclass(frozen=True, slots=True)
class Notification:
    """A user-visible message handed to the host for rendering."""

    title: str
    message: str
    variant: NotificationVariant = "info"
    agent: str | None = None


@runtime_checkable
class SessionAccessor(Protocol):
    """Read-only access to the host's sessions and transcripts."""

    async def get(self, session_id: str) -> SessionInfo | None:
        """Return session info, or None if unknown."""
        ...

    async def list(self) -> list[SessionInfo]:
        """Return all sessions, most recently active first."""
        ...

    async def messages(self, session_id: str, limit: int) -> list[dict[str, Any]]:
        """Return the last `limit` transcript messages in chronological order."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Sink for user-visible notifications."""

    async def notify(self, session_id: str, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Notifier that renders to the contextprune.notify logger.

    Used when the host does not supply its own notification sink.
    """

    async def notify(self, session_id: str, notification: Notification) -> None:
        level = {"warning": 30, "error": 40}.get(notification.variant, 20)
        log.log(level, "[%s] %s: %s", session_id, notification.title, notification.message)
