"""Manifest reconciliation.

The ``Reconciler`` compares the local metadata cache against a manifest
and converges the two, one document identity at a time:

1. Groups local records and manifest entries by normalised identity.
2. Plans one action per identity (``plan()``, pure, also used for
   dry runs).
3. Executes downloads and uploads on a bounded pool of worker threads.
4. Records every successful transfer in the ``MetadataStore``.
5. Republishes the manifest from the updated cache, even after
   failures, so a later pass only retries what failed.
6. Builds and returns a ``SyncReport``.

Error handling is per identity: a failed download or upload becomes a
``failed`` outcome and leaves both stores as they were for that identity.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from ..core.async_utils import gather_limited, run_sync, run_sync_limited
from ..core.transport import BlobTransport
from ..errors import (
    CorruptDownloadError,
    CutsheetSyncError,
    DocumentIOError,
    NotFoundError,
)
from .manifest import ManifestStore
from .metadata import MetadataStore
from .models import (
    LocalRecord,
    Manifest,
    ManifestEntry,
    PlanItem,
    PlannedAction,
    SyncAction,
    SyncOutcome,
    SyncReport,
)

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[/\\?%*:|"<>]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(part_number: str) -> str:
    """Turn a part number into a ``.pdf`` file name.

    >>> sanitize_filename("ACH550 01/A")
    'ACH550_01A.pdf'
    """
    name = _WHITESPACE.sub("_", _UNSAFE_CHARS.sub("", part_number.strip()))
    if not name.lower().endswith(".pdf"):
        name = f"{name}.pdf"
    return name


def _latest_by_identity(items: Iterable, sort_key) -> dict:
    """Collapse duplicates, keeping the latest item per identity."""
    latest: dict = {}
    for item in sorted(items, key=sort_key):
        latest[item.identity.normalized] = item
    return latest


class Reconciler:
    """Converge the local cache and a manifest for one project.

    Args:
        metadata: Local metadata cache.
        manifest_store: Manifest store of the same project; republished
            at the end of every pass.
        transport: Blob transport used for downloads and uploads.
        download_dir: Root directory for documents that have no local
            record yet.
        max_parallel: Identities processed concurrently.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        manifest_store: ManifestStore,
        transport: BlobTransport,
        download_dir: Path,
        max_parallel: int = 4,
    ) -> None:
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        self.metadata = metadata
        self.manifest_store = manifest_store
        self.transport = transport
        self.download_dir = Path(download_dir)
        self.max_parallel = max_parallel
        self.hash_engine = metadata.hash_engine

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        local_records: Iterable[LocalRecord],
        manifest: Manifest,
        force_refresh: bool = False,
    ) -> list[PlanItem]:
        """Decide one action per distinct identity.

        * both sides, equal hashes, not forced: up to date
        * local copy already carrying a remote URL, not forced, and no
          newer remote: up to date (the manifest is missing or stale)
        * remote only, forced, or remote strictly newer: download
        * local only, or local newer or equal: upload

        Duplicate identities on either side collapse to the most
        recently updated one.  Items are ordered by manifest key.
        """
        locals_by_id: dict[tuple[str, str], LocalRecord] = (
            _latest_by_identity(
                local_records, lambda r: (r.last_updated, r.local_path)
            )
        )
        remotes_by_id: dict[tuple[str, str], ManifestEntry] = (
            _latest_by_identity(
                manifest.entries(), lambda e: (e.last_updated, e.key)
            )
        )

        items: list[PlanItem] = []
        for norm in locals_by_id.keys() | remotes_by_id.keys():
            local = locals_by_id.get(norm)
            remote = remotes_by_id.get(norm)
            identity = (local or remote).identity
            items.append(
                PlanItem(
                    identity=identity,
                    action=self._decide(local, remote, force_refresh),
                    local=local,
                    remote=remote,
                )
            )
        items.sort(key=lambda i: (i.identity.key, i.identity.normalized))
        return items

    @staticmethod
    def _decide(
        local: LocalRecord | None,
        remote: ManifestEntry | None,
        force_refresh: bool,
    ) -> PlannedAction:
        if remote is None:
            # already uploaded, just not listed in this manifest
            if local.remote_url and not force_refresh:
                return PlannedAction.UP_TO_DATE
            return PlannedAction.UPLOAD
        if local is None or force_refresh:
            return PlannedAction.DOWNLOAD
        if local.content_hash == remote.content_hash:
            return PlannedAction.UP_TO_DATE
        if remote.last_updated > local.last_updated:
            return PlannedAction.DOWNLOAD
        # refresh() drops the URL on a hash change, so these bytes are
        # already uploaded and the manifest is stale
        if local.remote_url:
            return PlannedAction.UP_TO_DATE
        return PlannedAction.UPLOAD

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    async def reconcile(
        self,
        manifest: Manifest | None = None,
        force_refresh: bool = False,
        dry_run: bool = False,
    ) -> SyncReport:
        """Run a full reconciliation pass.

        Args:
            manifest: Manifest to converge with.  Defaults to the
                project's persisted manifest.
            force_refresh: Re-download every document the manifest lists
                and re-upload local documents it does not list.
            dry_run: Plan only; no transfers, no store writes.

        Returns:
            A ``SyncReport`` with the plan and one outcome per identity.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        if manifest is None:
            manifest = await run_sync(self.manifest_store.read)

        records = await run_sync(self.metadata.list)
        items = self.plan(records, manifest, force_refresh)
        logger.info(
            "Reconciling %d identities (%d local, %d in manifest)%s",
            len(items),
            len(records),
            len(manifest),
            " [dry run]" if dry_run else "",
        )

        outcomes: list[SyncOutcome] = []
        if not dry_run:
            targets = self.download_targets(items, records)
            semaphore = asyncio.Semaphore(self.max_parallel)
            outcomes = await gather_limited(
                [
                    run_sync_limited(
                        semaphore,
                        self._execute,
                        item,
                        targets.get(item.identity.normalized),
                    )
                    for item in items
                ]
            )
            await run_sync(self.republish)

        report = SyncReport(
            project_id=self.manifest_store.project_id,
            dry_run=dry_run,
            outcomes=outcomes,
            plan=items,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        if not dry_run:
            logger.info(
                "Reconciliation finished: %d downloaded, %d uploaded, "
                "%d up to date, %d failed",
                len(report.downloaded),
                len(report.uploaded),
                len(report.up_to_date),
                len(report.failed),
            )
        return report

    def run(
        self,
        manifest: Manifest | None = None,
        force_refresh: bool = False,
        dry_run: bool = False,
    ) -> SyncReport:
        """Blocking wrapper around ``reconcile()``."""
        return asyncio.run(
            self.reconcile(
                manifest=manifest,
                force_refresh=force_refresh,
                dry_run=dry_run,
            )
        )

    # ------------------------------------------------------------------
    # Per-identity execution
    # ------------------------------------------------------------------

    def republish(self) -> Manifest:
        """Regenerate the project manifest from the metadata cache."""
        return self.manifest_store.publish(self.metadata.list())

    def _execute(
        self, item: PlanItem, target: Path | None = None
    ) -> SyncOutcome:
        """Carry out one planned action; never raises."""
        try:
            match item.action:
                case PlannedAction.UP_TO_DATE:
                    return SyncOutcome(
                        identity=item.identity,
                        action=SyncAction.UP_TO_DATE,
                        local_path=item.local.local_path if item.local else None,
                        remote_url=self._current_url(item),
                    )
                case PlannedAction.DOWNLOAD:
                    return self._download(item, target)
                case PlannedAction.UPLOAD:
                    return self._upload(item)
        except CutsheetSyncError as exc:
            logger.warning(
                "Failed to reconcile %s (%s): %s",
                item.identity,
                item.action.value,
                exc,
            )
            return self._failed(item, exc)
        except Exception as exc:
            logger.exception("Unexpected error reconciling %s", item.identity)
            return self._failed(item, exc)
        raise ValueError(f"Unknown planned action: {item.action}")

    @staticmethod
    def _current_url(item: PlanItem) -> str | None:
        local, remote = item.local, item.remote
        if remote is None:
            return local.remote_url
        if local is None or local.content_hash == remote.content_hash:
            return remote.remote_url
        return local.remote_url

    @staticmethod
    def _failed(item: PlanItem, exc: Exception) -> SyncOutcome:
        return SyncOutcome(
            identity=item.identity,
            action=SyncAction.FAILED,
            local_path=item.local.local_path if item.local else None,
            remote_url=item.remote.remote_url if item.remote else None,
            error_kind=type(exc).__name__,
            error_detail=str(exc),
        )

    def target_path(self, item: PlanItem) -> Path:
        """Where a download for *item* is written.

        The existing local copy is overwritten in place; otherwise the
        document goes to ``<download_dir>/<manufacturer>/<part>.pdf``.
        """
        if item.local is not None and item.local.local_path:
            return Path(item.local.local_path)
        identity = item.identity
        brand = _UNSAFE_CHARS.sub("", identity.manufacturer.strip().lower())
        return (
            self.download_dir
            / (brand or "unknown")
            / sanitize_filename(identity.part_number or identity.key)
        )

    def download_targets(
        self, items: Iterable[PlanItem], records: Iterable[LocalRecord]
    ) -> dict[tuple[str, str], Path]:
        """Assign a download path to every identity planned for download.

        Identities with a local copy keep its path.  New documents go to
        ``target_path()``; when that path is already held by a record of
        another identity, or wanted by more than one new document, each
        claimant is written under its manifest key instead.
        """
        held = {record.local_path for record in records if record.local_path}
        targets: dict[tuple[str, str], Path] = {}
        claims: dict[Path, list[PlanItem]] = {}
        for item in items:
            if item.action != PlannedAction.DOWNLOAD:
                continue
            path = self.target_path(item)
            if item.local is not None and item.local.local_path:
                targets[item.identity.normalized] = path
            else:
                claims.setdefault(path.expanduser().absolute(), []).append(item)

        for path, claimants in claims.items():
            clash = len(claimants) > 1 or str(path) in held
            for item in claimants:
                if clash:
                    unique = path.with_name(sanitize_filename(item.identity.key))
                    logger.warning(
                        "%s collides with another document at %s; using %s",
                        item.identity,
                        path,
                        unique,
                    )
                    targets[item.identity.normalized] = unique
                else:
                    targets[item.identity.normalized] = path
        return targets

    def _download(
        self, item: PlanItem, target: Path | None = None
    ) -> SyncOutcome:
        remote = item.remote
        identity = item.local.identity if item.local else remote.identity
        target = target or self.target_path(item)
        holder = self.metadata.get(target)
        if holder is not None and not holder.identity.matches(identity):
            raise DocumentIOError(
                f"Download target {target} already holds "
                f"{holder.identity}; refusing to overwrite it with {identity}"
            )
        data = self.transport.download(remote.remote_url)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target.parent), suffix=".part"
            )
        except OSError as exc:
            raise DocumentIOError(
                f"Cannot prepare download target {target}: {exc}"
            ) from exc

        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            actual = self.hash_engine.digest(tmp_path)
            if actual != remote.content_hash.lower():
                raise CorruptDownloadError(
                    remote.remote_url, remote.content_hash, actual
                )
            os.replace(tmp_path, target)
        except OSError as exc:
            self._discard(tmp_path)
            raise DocumentIOError(
                f"Failed to write download {target}: {exc}"
            ) from exc
        except BaseException:
            self._discard(tmp_path)
            raise

        record = self.metadata.refresh(
            identity, target, remote_url=remote.remote_url
        )
        logger.info("Downloaded %s -> %s", identity, target)
        return SyncOutcome(
            identity=item.identity,
            action=SyncAction.DOWNLOADED,
            local_path=record.local_path,
            remote_url=record.remote_url,
        )

    def _upload(self, item: PlanItem) -> SyncOutcome:
        local = item.local
        path = Path(local.local_path)
        if not local.local_path or not path.is_file():
            raise NotFoundError(
                f"Local file missing for {item.identity}: {local.local_path}",
                target=local.local_path,
            )
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise DocumentIOError(f"Failed to read {path}: {exc}") from exc

        url = self.transport.upload(data, local.file_name or path.name)
        record = self.metadata.refresh(local.identity, path, remote_url=url)
        logger.info("Uploaded %s -> %s", item.identity, url)
        return SyncOutcome(
            identity=item.identity,
            action=SyncAction.UPLOADED,
            local_path=record.local_path,
            remote_url=url,
        )

    @staticmethod
    def _discard(tmp_path: str) -> None:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
