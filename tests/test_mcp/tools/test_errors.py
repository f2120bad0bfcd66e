"""Tests for mcp/tools/errors.py — error response builders.

Covers:
- build_error_response() structure and format
- error_response_for() mapping of package exceptions to error types
"""

import mcp.types as types
import pytest

from cutsheet_sync.errors import (
    CorruptDownloadError,
    CutsheetSyncError,
    DocumentIOError,
    InvalidManifestError,
    NotFoundError,
    TransportAuthRequiredError,
    TransportError,
    TransportTimeoutError,
)
from cutsheet_sync.mcp.tools.errors import build_error_response, error_response_for


def _get_error_text(result: types.CallToolResult) -> str:
    """Extract text from first content item with type narrowing for Pyright."""
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


# ---------------------------------------------------------------------------
# build_error_response tests
# ---------------------------------------------------------------------------


class TestBuildErrorResponse:
    """Tests for build_error_response()."""

    def test_returns_error_result(self):
        result = build_error_response("not_found", "Not found", "Try again")
        assert isinstance(result, types.CallToolResult)
        assert result.isError is True
        assert len(result.content) == 1

    def test_error_format(self):
        """Text format is 'Error ({type}): {message}\\n\\nAction: {action}'."""
        result = build_error_response(
            "validation_error", "dry_run must be a boolean", "Fix it."
        )
        assert _get_error_text(result) == (
            "Error (validation_error): dry_run must be a boolean\n\nAction: Fix it."
        )


# ---------------------------------------------------------------------------
# error_response_for tests
# ---------------------------------------------------------------------------


class TestErrorResponseFor:
    """Tests for error_response_for() exception mapping."""

    @pytest.mark.parametrize(
        ("error", "error_type"),
        [
            (TransportAuthRequiredError("https://x/1", 403), "manual_intervention"),
            (TransportTimeoutError("slow"), "timeout"),
            (TransportError("refused"), "transport_error"),
            (NotFoundError("gone", target="/x.pdf"), "not_found"),
            (InvalidManifestError("no files"), "invalid_manifest"),
            (CorruptDownloadError("https://x/1", "aa", "bb"), "corrupt_download"),
            (DocumentIOError("disk full"), "io_error"),
            (CutsheetSyncError("other"), "server_error"),
        ],
    )
    def test_mapping(self, error, error_type):
        result = error_response_for(error)

        assert result.isError is True
        assert _get_error_text(result).startswith(f"Error ({error_type}): {error}")

    def test_auth_error_names_url_and_discourages_retry(self):
        text = _get_error_text(
            error_response_for(TransportAuthRequiredError("https://x/private", 401))
        )
        assert "https://x/private" in text
        assert "Retrying will not help" in text
