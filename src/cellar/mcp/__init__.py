"""
MCP server exposing cellar's runner management and game launching.
"""

from .mcp_runner import MCPRunner, WorkspaceConfig

__all__ = ["MCPRunner", "WorkspaceConfig"]
