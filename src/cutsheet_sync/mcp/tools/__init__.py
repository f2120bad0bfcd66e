"""MCP tool handlers for cut sheet sync.

Wraps the reconciler and the stores with async handlers and structured
error responses.
"""

from .errors import build_error_response, error_response_for
from .sync import SYNC_TOOLS, handle_sync_tool

__all__ = [
    "SYNC_TOOLS",
    "build_error_response",
    "error_response_for",
    "handle_sync_tool",
]
