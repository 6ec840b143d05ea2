"""Short human-readable summaries of tool calls."""

from __future__ import annotations

import json
from pathlib import PurePath
from typing import Any

from contextprune.state.session import ToolCallRecord

# Parameter names tried in order; the first string value wins.
KEY_PARAMETERS = (
    "filePath",
    "file_path",
    "path",
    "command",
    "pattern",
    "url",
    "query",
    "description",
    "name",
)

MAX_KEY_LENGTH = 80


def _truncate(text: str, limit: int = MAX_KEY_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def shorten_path(path: str, working_directory: str | None = None) -> str:
    """Make a path relative to the working directory when it lies inside it."""
    if not working_directory:
        return path
    try:
        return str(PurePath(path).relative_to(working_directory))
    except ValueError:
        return path


def extract_parameter_key(
    record: ToolCallRecord | None,
    working_directory: str | None = None,
) -> str:
    """The most identifying parameter of a call, e.g. the file it read.

    Returns:
        A one-line summary, or "" when the call has no usable parameters.
    """
    if record is None:
        return ""
    params: Any = record.parameters
    if params is None or params == {}:
        return ""
    if isinstance(params, str):
        return _truncate(params)
    if not isinstance(params, dict):
        return _truncate(json.dumps(params, default=str))

    for name in KEY_PARAMETERS:
        value = params.get(name)
        if isinstance(value, str) and value:
            if name in ("filePath", "file_path", "path"):
                value = shorten_path(value, working_directory)
            return _truncate(value)

    for value in params.values():
        if isinstance(value, str) and value:
            return _truncate(value)
    return _truncate(json.dumps(params, sort_keys=True, default=str))


def describe_call(record: ToolCallRecord, working_directory: str | None = None) -> str:
    """Render a call as "<tool>, <key>", or just the tool name."""
    key = extract_parameter_key(record, working_directory)
    return f"{record.tool}, {key}" if key else record.tool
