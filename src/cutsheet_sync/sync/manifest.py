"""Manifest snapshot store.

A manifest is the shareable list of documents a project has remotely,
keyed by ``manifest_key``.  It is never edited entry by entry:
``publish()`` regenerates it wholesale from the local records that carry
a remote URL, and ``load()`` replaces it with a document fetched from
elsewhere.

``publish`` is pure with respect to its input.  Records are applied in a
canonical order (``last_updated``, then ``local_path``) so that, among
duplicate identities, the most recently updated one wins regardless of
how the caller ordered them, and ``generated_at`` is the newest entry
timestamp rather than the wall clock.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ..errors import DocumentIOError, InvalidManifestError
from .identity import part_number_from_key
from .models import (
    EPOCH,
    MANIFEST_VERSION,
    LocalRecord,
    Manifest,
    ManifestEntry,
)

if TYPE_CHECKING:
    from ..core.transport import BlobTransport

logger = logging.getLogger(__name__)


def build_manifest(records: Iterable[LocalRecord]) -> Manifest:
    """Derive a manifest from local records.

    Records without a remote URL are skipped.  Duplicate keys resolve to
    the record with the latest ``last_updated``.
    """
    published = [r for r in records if r.remote_url]
    published.sort(key=lambda r: (r.last_updated, r.local_path))

    files: dict[str, ManifestEntry] = {}
    for record in published:
        entry = ManifestEntry.from_record(record)
        if entry.key in files:
            logger.debug(
                "Duplicate identity %s: %s replaces earlier entry",
                entry.key,
                record.local_path,
            )
        files[entry.key] = entry

    generated_at = max(
        (e.last_updated for e in files.values()), default=EPOCH
    )
    return Manifest(
        generated_at=generated_at,
        version=MANIFEST_VERSION,
        files=dict(sorted(files.items())),
    )


def parse_manifest(document: Any) -> Manifest:
    """Validate a manifest document.

    Accepts the JSON structure written by ``Manifest.to_document()`` and
    by older clients (``version_hash`` or ``content_hash``; missing
    ``part_number`` recovered from the key).

    Raises:
        InvalidManifestError: If the document or any entry is malformed,
            or an entry lacks ``remote_url`` or a content hash.
    """
    if not isinstance(document, Mapping):
        raise InvalidManifestError("Manifest must be a JSON object")

    files = document.get("files")
    if not isinstance(files, Mapping):
        raise InvalidManifestError("Manifest has no 'files' object")

    metadata = document.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise InvalidManifestError("Manifest 'metadata' must be an object")

    entries: dict[str, ManifestEntry] = {}
    for key, raw in files.items():
        if not isinstance(raw, Mapping):
            raise InvalidManifestError(f"Entry '{key}' must be an object")
        if not raw.get("remote_url"):
            raise InvalidManifestError(f"Entry '{key}' is missing remote_url")
        data = dict(raw)
        if "version_hash" not in data and "content_hash" in data:
            data["version_hash"] = data.pop("content_hash")
        if not data.get("version_hash"):
            raise InvalidManifestError(
                f"Entry '{key}' is missing content hash"
            )
        data.setdefault("manufacturer", "")
        if not data.get("part_number"):
            data["part_number"] = part_number_from_key(
                str(key), data["manufacturer"]
            )
        try:
            entry = ManifestEntry.model_validate(data)
        except ValidationError as exc:
            raise InvalidManifestError(
                f"Entry '{key}' is invalid: {exc.errors()[0].get('msg')}"
            ) from exc
        entries[entry.key] = entry

    try:
        return Manifest(
            generated_at=metadata.get("generated_at") or EPOCH,
            version=str(metadata.get("version") or MANIFEST_VERSION),
            files=entries,
        )
    except ValidationError as exc:
        raise InvalidManifestError(
            f"Manifest metadata is invalid: {exc.errors()[0].get('msg')}"
        ) from exc


class ManifestStore:
    """Hold, persist, and share the current manifest of one project.

    Args:
        manifest_dir: Directory holding manifest files.
        project_id: Project identifier, used in the file name
            (``manifest-<project_id>.json``).
    """

    def __init__(self, manifest_dir: Path, project_id: str = "default") -> None:
        self._manifest_dir = Path(manifest_dir)
        self.project_id = project_id
        self._lock = threading.Lock()
        self._current = Manifest()

    @property
    def path(self) -> Path:
        return self._manifest_dir / f"manifest-{self.project_id}.json"

    @property
    def current(self) -> Manifest:
        return self._current

    # ------------------------------------------------------------------
    # Snapshot operations
    # ------------------------------------------------------------------

    def publish(self, records: Iterable[LocalRecord]) -> Manifest:
        """Replace the manifest with one derived from *records* and save it."""
        manifest = build_manifest(records)
        with self._lock:
            self._current = manifest
            self.save(manifest)
        logger.info(
            "Published manifest for %s with %d entries",
            self.project_id,
            len(manifest),
        )
        return manifest

    def load(self, source: Mapping | str | bytes | Path) -> Manifest:
        """Replace the manifest with an externally supplied one.

        Args:
            source: A parsed JSON mapping, JSON text or bytes, or a path
                to a JSON file.

        Raises:
            InvalidManifestError: If *source* is unreadable or invalid.
                The previously held manifest is retained.
        """
        manifest = parse_manifest(self._read_source(source))
        with self._lock:
            self._current = manifest
        logger.info(
            "Loaded manifest with %d entries (generated %s)",
            len(manifest),
            manifest.generated_at.isoformat(),
        )
        return manifest

    def read(self) -> Manifest:
        """Load the persisted manifest for this project.

        A missing file yields an empty manifest; an invalid one is logged
        and also yields an empty manifest.
        """
        if not self.path.exists():
            return self._current
        try:
            return self.load(self.path)
        except InvalidManifestError as exc:
            logger.warning("Ignoring stored manifest %s: %s", self.path, exc)
            return self._current

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def fetch(self, url: str, transport: BlobTransport) -> Manifest:
        """Download a shared manifest from *url* and load it."""
        return self.load(transport.download(url))

    def share(self, transport: BlobTransport) -> str:
        """Upload the current manifest and return its URL.

        Raises:
            InvalidManifestError: If the manifest has no entries.
        """
        if not len(self._current):
            raise InvalidManifestError(
                "No documents with remote URLs to share"
            )
        payload = json.dumps(self._current.to_document(), indent=2)
        url = transport.upload(
            payload.encode("utf-8"),
            f"manifest-{self.project_id}.json",
            content_type="application/json",
        )
        logger.info("Shared manifest for %s at %s", self.project_id, url)
        return url

    # ------------------------------------------------------------------
    # Parsing and persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _read_source(source: Mapping | str | bytes | Path) -> Any:
        if isinstance(source, Mapping):
            return source
        try:
            if isinstance(source, Path):
                return json.loads(source.read_text(encoding="utf-8"))
            return json.loads(source)
        except (OSError, ValueError) as exc:
            raise InvalidManifestError(
                f"Manifest is not valid JSON: {exc}"
            ) from exc

    def save(self, manifest: Manifest | None = None) -> None:
        """Persist *manifest* (default: the current one) atomically.

        Raises:
            DocumentIOError: If the file cannot be written.
        """
        manifest = manifest if manifest is not None else self._current
        self._manifest_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._manifest_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(manifest.to_document(), fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise DocumentIOError(
                f"Failed to write manifest {self.path}: {exc}"
            ) from exc
