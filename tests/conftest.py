"""Shared pytest fixtures for cutsheet-sync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from cutsheet_sync.config import Config
from cutsheet_sync.errors import NotFoundError
from cutsheet_sync.sync.hashing import HashEngine
from cutsheet_sync.sync.manifest import ManifestStore
from cutsheet_sync.sync.metadata import MetadataStore


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live file service",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live file service"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeTransport:
    """In-memory BlobTransport replacement.

    Uploaded blobs are served back from ``https://files.test/<n>/<name>``.
    Set ``fail_uploads`` / ``fail_downloads`` to a mapping of filename or
    URL to an exception instance to inject failures.
    """

    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self.blobs: dict[str, bytes] = dict(blobs or {})
        self.uploads: list[tuple[str, str]] = []
        self.downloads: list[str] = []
        self.fail_uploads: dict[str, Exception] = {}
        self.fail_downloads: dict[str, Exception] = {}

    def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str = "application/pdf",
    ) -> str:
        if filename in self.fail_uploads:
            raise self.fail_uploads[filename]
        url = f"https://files.test/{len(self.uploads) + 1}/{filename}"
        self.uploads.append((filename, content_type))
        self.blobs[url] = bytes(data)
        return url

    def download(self, url: str) -> bytes:
        if url in self.fail_downloads:
            raise self.fail_downloads[url]
        self.downloads.append(url)
        if url not in self.blobs:
            raise NotFoundError(f"Remote object not found: {url}", target=url)
        return self.blobs[url]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def hash_engine() -> HashEngine:
    """Small threshold so tests exercise the streaming path cheaply."""
    return HashEngine(threshold=64, chunk_size=16)


@pytest.fixture
def metadata(tmp_path: Path, hash_engine: HashEngine) -> MetadataStore:
    return MetadataStore(tmp_path / "data" / "pdf-cache.json", hash_engine)


@pytest.fixture
def manifests(tmp_path: Path) -> ManifestStore:
    return ManifestStore(tmp_path / "data" / "manifests", project_id="test")


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """A valid Config rooted in the test's temp directory."""
    return Config(
        data_dir=str(tmp_path / "data"),
        project_id="test",
        upload_url="https://upload.test/api/uploadFiles",
        api_key="sk_test",
        app_id="app_test",
        max_parallel=2,
        hash_threshold=64,
    )


@pytest.fixture
def write_pdf(tmp_path: Path):
    """Factory fixture writing a fake PDF and returning its path."""

    def _write(name: str, content: bytes, folder: str = "pdfs") -> Path:
        path = tmp_path / folder / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _write
