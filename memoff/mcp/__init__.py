"""MCP servers for memoff."""
