"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..context import SyncContext, load_runtime_config
from ..core.async_utils import run_sync

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Merge all config sources: CLI > env vars > .env > YAML > defaults
    - Build the metadata cache, manifest store, and blob transport
    - Load the persisted manifest so status is available immediately

    On shutdown:
    - Log shutdown message

    Args:
        config_overrides: Optional dict with config values from CLI
            (data_dir, project_id, upload_url, insecure)

    Yields:
        Dict with 'context' key containing the initialized SyncContext

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Cut sheet sync MCP server starting...")

    try:
        config, sources = load_runtime_config(config_overrides)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Check CUTSHEET_DATA_DIR, CUTSHEET_PROJECT_ID, UPLOADTHING_URL."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    source_desc = ", ".join(sources) if sources else "defaults"
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")

    ctx = SyncContext.from_config(config)
    manifest = await run_sync(ctx.manifests.read)
    logger.info(
        "Project %s: cache %s, manifest %s (%d entries)",
        config.project_id,
        config.cache_path,
        ctx.manifests.path,
        len(manifest),
    )
    _stderr_print(f"  Project: {config.project_id}")
    _stderr_print(f"  Data directory: {config.data_dir}")
    _stderr_print(f"  Parallel documents: {config.max_parallel}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"context": ctx}

    logger.info("MCP server shutting down")
    _stderr_print("Cut sheet sync MCP server shutting down.")
