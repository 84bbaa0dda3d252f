"""Error types and error-envelope helpers.

Expected failures (upstream rejections, file/directory mix-ups, bad arguments) are
returned to the agent as readable text inside an error envelope. Only configuration
defects and argument validation use the ToolError exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .envelope import ToolResult, error_result


@dataclass(frozen=True, slots=True)
class ToolError(Exception):
    """An error whose message is safe to show to agents.

    Must never include the bearer credential.
    """

    code: str
    message: str
    hint: str | None = None


def upstream_error(status_code: int, body: str) -> ToolResult:
    """Surface a non-success upstream response verbatim."""
    return error_result(f"Error {status_code}: {body}")


def mismatch_error(message: str) -> ToolResult:
    """Success status, but the payload is the wrong kind of resource."""
    return error_result(message)


def validation_error(tool_name: str, err: ToolError) -> ToolResult:
    """Error for arguments rejected before the handler runs."""
    text = f"Invalid arguments for {tool_name}: {err.message}"
    if err.hint:
        text += f"\nHint: {err.hint}"
    return error_result(text)


def unknown_tool_error(name: str, available: Iterable[str]) -> ToolResult:
    """Error for a tool name that is not registered."""
    return error_result(f"Unknown tool: {name}\nAvailable tools: {', '.join(sorted(available))}")
