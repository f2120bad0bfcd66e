"""Local metadata cache.

Persists one ``LocalRecord`` per cached file in a single JSON document
(``{"files": {<localPath>: record}, "lastUpdated": ...}``).  The store is
the only source of local truth: the reconciler reads it, and every
download or upload ends with a ``refresh()`` here.

Key design choices:

* **Whole-table writes** -- every mutation reads the table, changes it,
  and writes it back under one lock, so parallel reconciliation tasks
  serialise at the table level (last writer wins).
* **Atomic writes** -- the table is written to a temp file and moved into
  place with ``os.replace()``; an interrupted run never leaves a
  half-written cache.
* **Self-healing** -- a missing cache loads as an empty table and a
  corrupt one is replaced by an empty table instead of raising, so a
  damaged cache never blocks startup.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ..errors import DocumentIOError, NotFoundError
from .hashing import HashEngine
from .identity import DocumentIdentity
from .models import LocalRecord, utc_now

logger = logging.getLogger(__name__)

_FILENAME_SPLIT = re.compile(r"[-_\s]+")

IdentityParser = Callable[[Path], DocumentIdentity | None]


def identity_from_filename(path: Path) -> DocumentIdentity | None:
    """Guess an identity from a ``<manufacturer>_<part number>.pdf`` name.

    The stem is split once on the first run of ``-``, ``_`` or
    whitespace.  Returns ``None`` when there is no separator.
    """
    parts = _FILENAME_SPLIT.split(path.stem.strip(), maxsplit=1)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return DocumentIdentity(manufacturer=parts[0], part_number=parts[1])


class MetadataStore:
    """Load, save, and query the local metadata cache.

    Args:
        cache_path: Path of the JSON cache file (typically
            ``<data_dir>/pdf-cache.json``).
        hash_engine: Digest strategy; defaults to ``HashEngine()``.
    """

    def __init__(
        self,
        cache_path: Path,
        hash_engine: HashEngine | None = None,
    ) -> None:
        self._cache_path = Path(cache_path)
        self._hasher = hash_engine or HashEngine()
        self._lock = threading.RLock()

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    @property
    def hash_engine(self) -> HashEngine:
        return self._hasher

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict[str, LocalRecord]:
        """Read the table from disk.

        Returns:
            Records keyed by local path.  Empty when the file is missing.
            A corrupt file is logged, replaced by an empty table, and
            reported as empty.
        """
        with self._lock:
            if not self._cache_path.exists():
                return {}
            try:
                with open(self._cache_path, encoding="utf-8") as fh:
                    raw = json.load(fh)
            except (OSError, ValueError) as exc:
                logger.warning(
                    "Metadata cache %s is unreadable (%s); starting empty",
                    self._cache_path,
                    exc,
                )
                self._reset()
                return {}

            files = raw.get("files") if isinstance(raw, dict) else None
            if not isinstance(files, dict):
                logger.warning(
                    "Metadata cache %s has no 'files' table; starting empty",
                    self._cache_path,
                )
                self._reset()
                return {}

            records: dict[str, LocalRecord] = {}
            for local_path, data in files.items():
                try:
                    records[local_path] = LocalRecord.model_validate(data)
                except ValidationError as exc:
                    logger.warning(
                        "Dropping invalid cache record %s: %s",
                        local_path,
                        exc.errors()[0].get("msg", exc),
                    )
            return records

    def save(self, records: dict[str, LocalRecord]) -> None:
        """Persist the whole table atomically.

        Creates the parent directory if needed.

        Raises:
            DocumentIOError: If the cache cannot be written.
        """
        document = {
            "files": {
                path: record.to_cache() for path, record in records.items()
            },
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            try:
                self._write_atomic(document)
            except OSError as exc:
                raise DocumentIOError(
                    f"Failed to write metadata cache {self._cache_path}: {exc}"
                ) from exc

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def refresh(
        self,
        identity: DocumentIdentity,
        local_path: str | Path,
        remote_url: str | None = None,
    ) -> LocalRecord:
        """Hash *local_path* and write its record.

        When *remote_url* is omitted the previously recorded URL is kept
        as long as the content hash is unchanged; a changed file drops it
        because the remote copy no longer matches.  ``last_updated`` only
        moves when the hash, the URL, or the identity changes.

        Raises:
            NotFoundError: If the file does not exist.
            DocumentIOError: If it cannot be read or the cache not written.
        """
        path = self._absolute(local_path)
        content_hash = self._hasher.digest(path)
        try:
            byte_size = path.stat().st_size
        except OSError as exc:
            raise DocumentIOError(f"Failed to stat {path}: {exc}") from exc

        key = str(path)
        remote_url = remote_url or None
        with self._lock:
            records = self.load()
            previous = records.get(key)

            if (
                remote_url is None
                and previous is not None
                and previous.content_hash == content_hash
            ):
                remote_url = previous.remote_url

            unchanged = (
                previous is not None
                and previous.content_hash == content_hash
                and previous.remote_url == remote_url
                and previous.identity == identity
            )
            record = LocalRecord(
                manufacturer=identity.manufacturer,
                part_number=identity.part_number,
                local_path=key,
                remote_url=remote_url,
                content_hash=content_hash,
                byte_size=byte_size,
                last_updated=previous.last_updated if unchanged else utc_now(),
                file_name=path.name,
            )
            records[key] = record
            self.save(records)

        logger.debug(
            "Refreshed %s (%s) hash=%s", key, identity, content_hash[:12]
        )
        return record

    def get(self, local_path: str | Path) -> LocalRecord | None:
        """Return the record for *local_path*, or ``None`` if absent."""
        return self.load().get(str(self._absolute(local_path)))

    def list(self) -> list[LocalRecord]:
        """Return all records in table order."""
        return list(self.load().values())

    def remove(self, local_path: str | Path) -> bool:
        """Remove the record for *local_path*.

        Returns:
            ``True`` if a record existed.
        """
        key = str(self._absolute(local_path))
        with self._lock:
            records = self.load()
            if key not in records:
                return False
            del records[key]
            self.save(records)
        return True

    def has_changed(self, local_path: str | Path) -> bool:
        """Return ``True`` if the file differs from its stored hash.

        Untracked and unreadable files count as changed.
        """
        record = self.get(local_path)
        if record is None:
            return True
        return self._hasher.has_changed(record.local_path, record.content_hash)

    def uploaded(self) -> list[LocalRecord]:
        """Records that carry a remote URL."""
        return [r for r in self.list() if r.remote_url]

    def find_by_identity(
        self, identity: DocumentIdentity
    ) -> LocalRecord | None:
        """Return the first record matching *identity*.

        Exact normalised matches win; otherwise the first record whose
        manufacturer and part number contain (or are contained in) the
        query is returned.
        """
        records = self.list()
        for record in records:
            if record.identity.matches(identity):
                return record
        for record in records:
            if record.identity.loosely_matches(identity):
                return record
        return None

    def scan_directory(
        self,
        directory: str | Path,
        identity_for: IdentityParser = identity_from_filename,
    ) -> list[LocalRecord]:
        """Refresh a record for every ``*.pdf`` in *directory*.

        Files already tracked keep their recorded identity; new files get
        one from *identity_for*.  Files without an identity or that fail
        to hash are logged and skipped.

        Raises:
            NotFoundError: If *directory* does not exist.
        """
        directory = Path(directory).expanduser().absolute()
        if not directory.is_dir():
            raise NotFoundError(
                f"Directory not found: {directory}", target=str(directory)
            )

        known = self.load()
        refreshed: list[LocalRecord] = []
        for path in sorted(directory.iterdir()):
            if not path.is_file() or path.suffix.lower() != ".pdf":
                continue
            existing = known.get(str(path))
            identity = existing.identity if existing else identity_for(path)
            if identity is None:
                logger.info("Skipping %s: cannot derive identity", path.name)
                continue
            try:
                refreshed.append(self.refresh(identity, path))
            except (NotFoundError, DocumentIOError) as exc:
                logger.error("Error scanning %s: %s", path, exc)
        logger.info(
            "Scanned %s: %d documents tracked", directory, len(refreshed)
        )
        return refreshed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _absolute(local_path: str | Path) -> Path:
        if not str(local_path).strip():
            raise NotFoundError("Empty document path", target="")
        return Path(local_path).expanduser().absolute()

    def _reset(self) -> None:
        try:
            self._write_atomic({"files": {}, "lastUpdated": utc_now().isoformat()})
        except OSError as exc:
            logger.error(
                "Could not reset metadata cache %s: %s", self._cache_path, exc
            )

    def _write_atomic(self, document: dict) -> None:
        directory = self._cache_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self._cache_path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
