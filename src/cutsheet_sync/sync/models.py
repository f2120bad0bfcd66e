"""Pydantic models for the cut sheet sync engine.

Defines the core data contracts used across all sync modules:

- ``LocalRecord``: last known state of one file in the local cache.
- ``ManifestEntry`` / ``Manifest``: shareable snapshot of remote copies.
- ``SyncAction``: outcome categories of a reconciliation pass.
- ``PlannedAction`` / ``PlanItem``: what the reconciler intends to do.
- ``SyncOutcome``: result for one identity.
- ``SyncSummary`` / ``SyncReport``: aggregate results for a full pass.

Wire names follow the established JSON formats (camelCase in the metadata
cache, snake_case in manifests) via field aliases; Python code always
uses the snake_case attribute names.  All models are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .identity import DocumentIdentity, manifest_key

MANIFEST_VERSION = "1.0"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from older cache files as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LocalRecord(BaseModel):
    """State of a single cached file.

    Attributes:
        manufacturer: Manufacturer as entered upstream.
        part_number: Part number as entered upstream.
        local_path: Absolute path of the cached file.
        remote_url: Where the same bytes live remotely, if uploaded.
        content_hash: SHA-256 hex digest, the authoritative version marker.
        byte_size: File size at last refresh.
        last_updated: Set whenever the hash or remote URL changes.
        file_name: Basename of ``local_path``.
    """

    manufacturer: str
    part_number: str = Field(alias="partNumber")
    local_path: str = Field(alias="localPath")
    remote_url: str | None = Field(default=None, alias="remoteUrl")
    content_hash: str = Field(alias="versionHash")
    byte_size: int = Field(default=0, alias="fileSize")
    last_updated: datetime = Field(default_factory=utc_now, alias="lastUpdated")
    file_name: str = Field(default="", alias="fileName")

    model_config = {"frozen": True, "populate_by_name": True}

    last_updated_utc = field_validator("last_updated")(_as_utc)

    @property
    def identity(self) -> DocumentIdentity:
        return DocumentIdentity(
            manufacturer=self.manufacturer, part_number=self.part_number
        )

    def to_cache(self) -> dict:
        """Serialise for the metadata cache file."""
        return self.model_dump(mode="json", by_alias=True)


class ManifestEntry(BaseModel):
    """One remotely available document in a manifest."""

    manufacturer: str
    part_number: str
    remote_url: str
    content_hash: str = Field(alias="version_hash")
    byte_size: int = Field(default=0, alias="file_size")
    last_updated: datetime = EPOCH

    model_config = {"frozen": True, "populate_by_name": True}

    last_updated_utc = field_validator("last_updated")(_as_utc)

    @property
    def identity(self) -> DocumentIdentity:
        return DocumentIdentity(
            manufacturer=self.manufacturer, part_number=self.part_number
        )

    @property
    def key(self) -> str:
        return manifest_key(self.manufacturer, self.part_number)

    @classmethod
    def from_record(cls, record: LocalRecord) -> ManifestEntry:
        if not record.remote_url:
            raise ValueError(
                f"Cannot publish {record.local_path}: no remote URL"
            )
        return cls(
            manufacturer=record.manufacturer,
            part_number=record.part_number,
            remote_url=record.remote_url,
            content_hash=record.content_hash,
            byte_size=record.byte_size,
            last_updated=record.last_updated,
        )


class Manifest(BaseModel):
    """Snapshot of all documents a project claims to have remotely.

    Attributes:
        generated_at: Newest ``last_updated`` among the entries.
        version: Manifest format version.
        files: Entries keyed by ``manifest_key``.
    """

    generated_at: datetime = EPOCH
    version: str = MANIFEST_VERSION
    files: dict[str, ManifestEntry] = {}

    model_config = {"frozen": True}

    generated_at_utc = field_validator("generated_at")(_as_utc)

    def __len__(self) -> int:
        return len(self.files)

    def entries(self) -> list[ManifestEntry]:
        return list(self.files.values())

    def to_document(self) -> dict:
        """Serialise to the shareable manifest JSON structure."""
        return {
            "metadata": {
                "generated_at": self.generated_at.isoformat(),
                "version": self.version,
            },
            "files": {
                key: entry.model_dump(mode="json", by_alias=True)
                for key, entry in self.files.items()
            },
        }


class SyncAction(str, Enum):
    """Outcome category for one identity after a reconciliation pass."""

    DOWNLOADED = "downloaded"
    UPLOADED = "uploaded"
    UP_TO_DATE = "up-to-date"
    FAILED = "failed"


class PlannedAction(str, Enum):
    """What the reconciler decided to do for one identity."""

    UP_TO_DATE = "up-to-date"
    DOWNLOAD = "needs-download"
    UPLOAD = "needs-upload"


class PlanItem(BaseModel):
    """Planned action for one identity, with both sides' state."""

    identity: DocumentIdentity
    action: PlannedAction
    local: LocalRecord | None = None
    remote: ManifestEntry | None = None

    model_config = {"frozen": True}


class SyncOutcome(BaseModel):
    """Result of reconciling one identity.

    Attributes:
        identity: The document identity.
        action: What happened.
        local_path: Local file involved, if any.
        remote_url: Remote location involved, if any.
        error_kind: Exception class name when ``action`` is FAILED.
        error_detail: Human-readable error message.
    """

    identity: DocumentIdentity
    action: SyncAction
    local_path: str | None = None
    remote_url: str | None = None
    error_kind: str | None = None
    error_detail: str | None = None

    model_config = {"frozen": True}

    @property
    def needs_intervention(self) -> bool:
        return self.error_kind == "TransportAuthRequiredError"


class SyncSummary(BaseModel):
    """Counts per outcome bucket."""

    total: int = 0
    downloaded: int = 0
    uploaded: int = 0
    up_to_date: int = 0
    failed: int = 0

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full reconciliation pass.

    Attributes:
        project_id: Project whose stores were reconciled.
        dry_run: Whether actions were only planned.
        outcomes: Individual outcomes, one per identity.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    project_id: str
    dry_run: bool = False
    outcomes: list[SyncOutcome] = []
    plan: list[PlanItem] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with(self, action: SyncAction) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.action == action]

    @property
    def downloaded(self) -> list[SyncOutcome]:
        return self._with(SyncAction.DOWNLOADED)

    @property
    def uploaded(self) -> list[SyncOutcome]:
        return self._with(SyncAction.UPLOADED)

    @property
    def up_to_date(self) -> list[SyncOutcome]:
        return self._with(SyncAction.UP_TO_DATE)

    @property
    def failed(self) -> list[SyncOutcome]:
        return self._with(SyncAction.FAILED)

    @property
    def needs_intervention(self) -> list[SyncOutcome]:
        """Failures that a human must resolve (authentication)."""
        return [o for o in self.outcomes if o.needs_intervention]

    @property
    def success(self) -> bool:
        return not self.failed
