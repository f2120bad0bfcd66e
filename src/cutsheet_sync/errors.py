"""Exception hierarchy for cutsheet_sync.

Every error raised by the stores, the hash engine, and the blob transport
derives from ``CutsheetSyncError`` so callers can catch the whole family
at once.  The reconciler turns these into ``failed`` outcomes per
document; only the outer surfaces (CLI, MCP tools) ever see them raw.
"""

from __future__ import annotations


class CutsheetSyncError(Exception):
    """Base class for all cutsheet_sync errors."""


class NotFoundError(CutsheetSyncError):
    """A local path or remote URL does not exist."""

    def __init__(self, message: str, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target


class DocumentIOError(CutsheetSyncError):
    """Reading or writing a document failed."""


class CorruptDownloadError(CutsheetSyncError):
    """Downloaded bytes do not hash to the expected digest."""

    def __init__(self, url: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Downloaded content from {url} hashes to {actual}, "
            f"expected {expected}"
        )
        self.url = url
        self.expected = expected
        self.actual = actual


class TransportError(CutsheetSyncError):
    """The blob transport could not complete a request."""


class TransportAuthRequiredError(TransportError):
    """The remote store rejected the request as unauthenticated.

    Surfaced verbatim to the caller with the offending URL so a human can
    fix credentials or permissions.
    """

    def __init__(self, url: str, status_code: int | None = None) -> None:
        detail = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"Remote rejected access to {url}{detail}; "
            "check credentials or permissions"
        )
        self.url = url
        self.status_code = status_code


class TransportTimeoutError(TransportError):
    """The blob transport did not answer within its time budget."""


class InvalidManifestError(CutsheetSyncError):
    """A manifest document is malformed or misses required fields."""
