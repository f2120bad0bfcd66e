"""Blob transport and async helpers shared between CLI and MCP server."""

from .async_utils import run_sync
from .transport import BlobTransport, HttpBlobTransport

__all__ = ["BlobTransport", "HttpBlobTransport", "run_sync"]
