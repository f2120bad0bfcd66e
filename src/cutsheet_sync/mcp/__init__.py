"""MCP server exposing cut sheet reconciliation to AI agents."""
