"""Runtime wiring shared by the CLI and the MCP server.

Resolves configuration from every source and builds the stores and the
transport for one project.
"""

import logging
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import build_config, yaml_fallbacks
from .core.transport import BlobTransport, HttpBlobTransport
from .sync.hashing import HashEngine
from .sync.manifest import ManifestStore
from .sync.metadata import MetadataStore
from .sync.reconciler import Reconciler

logger = logging.getLogger(__name__)


def load_runtime_config(
    overrides: dict[str, Any] | None = None,
) -> tuple[Config, list[str]]:
    """Merge CLI overrides, env vars, .env, and YAML into a ``Config``.

    Returns:
        The validated config and a list describing the sources used.

    Raises:
        ValueError: If the merged configuration is invalid.
    """
    # .env first so ${VAR} interpolation in YAML can see its values
    load_dotenv()

    sources: list[str] = []
    fallbacks: dict[str, Any] | None = None
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        fallbacks = yaml_fallbacks(unified)
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        data_dir=overrides.get("data_dir"),
        project_id=overrides.get("project_id"),
        upload_url=overrides.get("upload_url"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, sources


@dataclass
class SyncContext:
    """Stores and transport for one project."""

    config: Config
    metadata: MetadataStore
    manifests: ManifestStore
    transport: BlobTransport

    @classmethod
    def from_config(
        cls, config: Config, transport: BlobTransport | None = None
    ) -> "SyncContext":
        hash_engine = HashEngine(threshold=config.hash_threshold)
        return cls(
            config=config,
            metadata=MetadataStore(config.cache_path, hash_engine),
            manifests=ManifestStore(config.manifest_dir, config.project_id),
            transport=transport or HttpBlobTransport(config),
        )

    def reconciler(self) -> Reconciler:
        return Reconciler(
            self.metadata,
            self.manifests,
            self.transport,
            download_dir=self.config.cut_sheet_dir,
            max_parallel=self.config.max_parallel,
        )

    def status(self) -> dict[str, Any]:
        """Summarise cache and manifest state."""
        records = self.metadata.list()
        manifest = self.manifests.read()
        return {
            "project_id": self.config.project_id,
            "cache_path": str(self.metadata.cache_path),
            "tracked_files": len(records),
            "uploaded": sum(1 for r in records if r.remote_url),
            "changed": [
                r.local_path
                for r in records
                if self.metadata.has_changed(r.local_path)
            ],
            "manifest_path": str(self.manifests.path),
            "manifest_entries": len(manifest),
            "generated_at": manifest.generated_at.isoformat(),
        }
