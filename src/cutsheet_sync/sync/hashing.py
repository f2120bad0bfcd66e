"""Content hashing for cached documents.

SHA-256 over the raw file bytes, hex-encoded lower case.  Unlike text
hashing there is no normalisation: PDFs are compared byte for byte, and
digests must match manifests produced by other clients bit-exactly.

Files above ``threshold`` are read in ``chunk_size`` pieces so memory
stays bounded; smaller files are read in one call.  Both strategies
yield the same digest.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from ..errors import DocumentIOError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 50 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 1024 * 1024


def digest_bytes(data: bytes) -> str:
    """SHA-256 hex digest of an in-memory buffer."""
    return hashlib.sha256(data).hexdigest()


class HashEngine:
    """Compute stable content digests for files.

    Args:
        threshold: Size in bytes above which files are streamed.
        chunk_size: Read size used when streaming.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.threshold = threshold
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def digest_whole(self, path: str | Path) -> str:
        """Hash a file by reading it entirely into memory."""
        path = self._check(path)
        try:
            return digest_bytes(path.read_bytes())
        except OSError as exc:
            raise DocumentIOError(f"Failed to read {path}: {exc}") from exc

    def digest_streaming(self, path: str | Path) -> str:
        """Hash a file in ``chunk_size`` pieces."""
        path = self._check(path)
        sha = hashlib.sha256()
        try:
            with open(path, "rb") as fh:
                for chunk in iter(lambda: fh.read(self.chunk_size), b""):
                    sha.update(chunk)
        except OSError as exc:
            raise DocumentIOError(f"Failed to read {path}: {exc}") from exc
        return sha.hexdigest()

    def digest(self, path: str | Path) -> str:
        """Hash a file, streaming it when it exceeds the threshold.

        Raises:
            NotFoundError: If *path* does not exist.
            DocumentIOError: If *path* cannot be read.
        """
        path = self._check(path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise DocumentIOError(f"Failed to stat {path}: {exc}") from exc
        if size > self.threshold:
            return self.digest_streaming(path)
        return self.digest_whole(path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def has_changed(self, path: str | Path, stored_hash: str) -> bool:
        """Return ``True`` if the file no longer hashes to *stored_hash*.

        Any failure to hash counts as a change.
        """
        try:
            return self.digest(path) != stored_hash
        except (NotFoundError, DocumentIOError) as exc:
            logger.warning("Treating %s as changed: %s", path, exc)
            return True

    def directory_hashes(self, directory: str | Path) -> dict[str, str]:
        """Hash every ``*.pdf`` directly inside *directory*.

        Unreadable files are logged and left out.  A missing directory
        yields an empty dict.
        """
        directory = Path(directory)
        hashes: dict[str, str] = {}
        if not directory.is_dir():
            logger.warning("Not a directory: %s", directory)
            return hashes
        for entry in sorted(directory.iterdir()):
            if not entry.is_file() or entry.suffix.lower() != ".pdf":
                continue
            try:
                hashes[str(entry)] = self.digest(entry)
            except (NotFoundError, DocumentIOError) as exc:
                logger.error("Error hashing %s: %s", entry, exc)
        return hashes

    def files_identical(self, first: str | Path, second: str | Path) -> bool:
        """Compare two files by digest; unreadable files are never identical."""
        try:
            return self.digest(first) == self.digest(second)
        except (NotFoundError, DocumentIOError) as exc:
            logger.error("Error comparing %s and %s: %s", first, second, exc)
            return False

    @staticmethod
    def _check(path: str | Path) -> Path:
        if not path or not str(path).strip():
            raise NotFoundError("Empty document path", target="")
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"File not found: {path}", target=str(path))
        if not path.is_file():
            raise DocumentIOError(f"Not a regular file: {path}")
        return path
