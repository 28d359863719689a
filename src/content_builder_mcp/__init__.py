"""MCP server for compiling game content in disposable build workspaces."""

__version__ = "0.1.0"
