"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so AI agents can
recover without human intervention where that is possible, and say so
plainly where it is not.
"""

import mcp.types as types

from ...errors import (
    CorruptDownloadError,
    CutsheetSyncError,
    DocumentIOError,
    InvalidManifestError,
    NotFoundError,
    TransportAuthRequiredError,
    TransportError,
    TransportTimeoutError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, io_error, invalid_manifest,
            manual_intervention, timeout, transport_error, validation_error,
            server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Directory not found: /x", "Check the path.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def error_response_for(error: CutsheetSyncError) -> types.CallToolResult:
    """Translate a package exception into a structured error response."""
    match error:
        case TransportAuthRequiredError():
            return build_error_response(
                "manual_intervention",
                str(error),
                "Ask a human to check UPLOADTHING_TOKEN and access rights "
                "for the URL above. Retrying will not help.",
            )
        case TransportTimeoutError():
            return build_error_response(
                "timeout",
                str(error),
                "Retry later or raise CUTSHEET_TIMEOUT.",
            )
        case TransportError():
            return build_error_response(
                "transport_error",
                str(error),
                "Check UPLOADTHING_URL and network connectivity, then retry.",
            )
        case NotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Verify the path or URL exists. Use cutsheet_sync_status to "
                "list tracked documents.",
            )
        case InvalidManifestError():
            return build_error_response(
                "invalid_manifest",
                str(error),
                "Regenerate the manifest with manifest_publish, or ask the "
                "sender for a complete manifest.",
            )
        case CorruptDownloadError():
            return build_error_response(
                "corrupt_download",
                str(error),
                "Retry the sync. If it persists, the remote copy is damaged "
                "and must be re-uploaded.",
            )
        case DocumentIOError():
            return build_error_response(
                "io_error",
                str(error),
                "Check file permissions and free disk space under CUTSHEET_DATA_DIR.",
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry later."
            )
