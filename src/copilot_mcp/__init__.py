"""MCP server for GitHub Copilot usage metrics and seat management."""

__version__ = "1.0.0"
