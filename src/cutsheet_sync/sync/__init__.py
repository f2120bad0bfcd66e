"""Cut sheet cache and manifest reconciliation engine.

Public API for keeping a local cache of PDF cut sheets consistent with
copies in a remote file store.

Architecture
------------
SHA-256 content hashes are the only notion of "sameness".  The local
side is described by the metadata cache (one record per file), the
remote side by a manifest (one entry per document identity).  The
reconciler diffs the two per identity and downloads, uploads, or leaves
each document alone.

Modules:

- ``hashing``    -- ``HashEngine``: whole-file and streaming digests.
- ``identity``   -- ``DocumentIdentity``, ``normalize_part``,
  ``manifest_key``: the single place identities are normalised.
- ``metadata``   -- ``MetadataStore``: load/save/query the local cache.
- ``manifest``   -- ``ManifestStore``: publish, load, and share manifests.
- ``models``     -- ``LocalRecord``, ``ManifestEntry``, ``Manifest``,
  ``SyncOutcome``, ``SyncReport`` and friends: core data contracts.
- ``reconciler`` -- ``Reconciler``: plan, execute, republish.
- ``reporter``   -- Counts plus human-readable and JSON formatting.

Usage example
-------------
::

    from pathlib import Path
    from cutsheet_sync.core.transport import HttpBlobTransport
    from cutsheet_sync.sync import (
        ManifestStore,
        MetadataStore,
        Reconciler,
        format_sync_report,
    )

    metadata = MetadataStore(Path("data/pdf-cache.json"))
    metadata.scan_directory("data/cut_sheets/abb")
    manifests = ManifestStore(Path("data/manifests"), project_id="plant-7")

    reconciler = Reconciler(
        metadata,
        manifests,
        HttpBlobTransport(config),
        download_dir=Path("data/cut_sheets"),
    )

    # Dry-run first to preview changes
    preview = reconciler.run(dry_run=True)

    report = reconciler.run()
    print(format_sync_report(report))
"""

from .hashing import HashEngine
from .identity import DocumentIdentity, manifest_key, normalize_part
from .manifest import ManifestStore, build_manifest, parse_manifest
from .metadata import MetadataStore, identity_from_filename
from .models import (
    LocalRecord,
    Manifest,
    ManifestEntry,
    PlanItem,
    PlannedAction,
    SyncAction,
    SyncOutcome,
    SyncReport,
    SyncSummary,
)
from .reconciler import Reconciler
from .reporter import (
    format_plan_preview,
    format_sync_report,
    report_to_json,
    summarize,
)

__all__ = [
    "DocumentIdentity",
    "HashEngine",
    "LocalRecord",
    "Manifest",
    "ManifestEntry",
    "ManifestStore",
    "MetadataStore",
    "PlanItem",
    "PlannedAction",
    "Reconciler",
    "SyncAction",
    "SyncOutcome",
    "SyncReport",
    "SyncSummary",
    "build_manifest",
    "format_plan_preview",
    "format_sync_report",
    "identity_from_filename",
    "manifest_key",
    "normalize_part",
    "parse_manifest",
    "report_to_json",
    "summarize",
]
