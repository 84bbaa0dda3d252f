"""The uniform result envelope returned by every tool."""

from __future__ import annotations

from dataclasses import dataclass

from mcp.types import CallToolResult, TextContent


@dataclass(frozen=True, slots=True)
class TextBlock:
    """A single text content block."""

    text: str
    type: str = "text"


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Ordered content blocks plus an error flag.

    is_error is True exactly when the operation could not complete; the content then
    carries a human-readable diagnostic.
    """

    content: tuple[TextBlock, ...]
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_call_tool_result(self) -> CallToolResult:
        """Convert to the MCP SDK result type."""
        return CallToolResult(
            content=[TextContent(type="text", text=block.text) for block in self.content],
            isError=self.is_error,
        )


def text_result(text: str) -> ToolResult:
    return ToolResult(content=(TextBlock(text=text),))


def error_result(text: str) -> ToolResult:
    return ToolResult(content=(TextBlock(text=text),), is_error=True)
