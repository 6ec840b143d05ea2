"""Pruning state persistence.

Saves per-session state to YAML files in:
  <state dir>/<session-id>.yaml

State files contain:
- session_id: Unique identifier
- session_name: Human-readable title from the host
- updated_at: ISO timestamp
- pruned_ids: Sorted list of pruned tool-call IDs
- stats: Cumulative pruning stats
- id_mapping: Numeric ID -> tool-call ID
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import yaml

from contextprune.errors import StorageError
from contextprune.logging import get_logger
from contextprune.state.session import SessionStats

log = get_logger("storage")


@dataclass
class PersistedState:
    """Session state as read back from disk."""

    session_id: str
    pruned_ids: set[str]
    stats: SessionStats
    id_mapping: dict[int, str] = field(default_factory=dict)
    session_name: str | None = None
    updated_at: datetime | None = None


class StateStorage:
    """Reads and writes session state files under one directory."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, session_id: str) -> Path:
        """Get the path to a session's state file."""
        return self._dir / f"{session_id}.yaml"

    def save(
        self,
        session_id: str,
        pruned_ids: set[str],
        stats: SessionStats,
        session_name: str | None = None,
        id_mapping: dict[int, str] | None = None,
    ) -> Path:
        """Save session state to a YAML file.

        Performs atomic write by writing to a temp file first.

        Returns:
            Path to the saved state file.

        Raises:
            StorageError: If the file could not be written.
        """
        path = self.path_for(session_id)
        temp_path = path.with_suffix(".yaml.tmp")

        data = {
            "session_id": session_id,
            "session_name": session_name,
            "updated_at": datetime.now().isoformat(),
            "pruned_ids": sorted(pruned_ids),
            "stats": stats.to_dict(),
            "id_mapping": dict(sorted((id_mapping or {}).items())),
        }

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            # os.replace semantics: overwrites the old file in one step
            temp_path.replace(path)
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Failed to save state for {session_id}: {e}") from e

        log.debug("Saved state for %s (%d pruned)", session_id, len(pruned_ids))
        return path

    def load(self, session_id: str) -> PersistedState | None:
        """Load a session's saved state.

        Returns:
            PersistedState, or None if the file doesn't exist or is invalid.
        """
        path = self.path_for(session_id)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)

            mapping = {
                int(numeric): str(actual)
                for numeric, actual in (data.get("id_mapping") or {}).items()
            }
            updated = data.get("updated_at")
            return PersistedState(
                session_id=data.get("session_id", session_id),
                pruned_ids={str(i).lower() for i in data.get("pruned_ids") or []},
                stats=SessionStats.from_dict(data.get("stats") or {}),
                id_mapping=mapping,
                session_name=data.get("session_name"),
                updated_at=datetime.fromisoformat(updated) if updated else None,
            )
        except Exception as e:
            log.warning("Failed to load state from %s: %s", path, e)
            return None

    def delete(self, session_id: str) -> bool:
        """Delete a session's state file.

        Returns:
            True if deleted, False if file didn't exist.
        """
        path = self.path_for(session_id)
        if path.exists():
            path.unlink()
            log.debug("Deleted state for %s", session_id)
            return True
        return False
