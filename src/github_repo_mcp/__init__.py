"""github-repo-mcp: MCP tools for a single GitHub repository."""

__version__ = "0.1.0"
