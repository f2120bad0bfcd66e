"""Unified configuration schema for cutsheet_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for storage, transport, reconciliation, and logging, plus an
adapter that flattens them into the fallbacks ``load_config()`` expects.

Usage:
    from cutsheet_sync.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    """Where local state lives."""

    data_dir: str | None = Field(
        default=None, description="Directory for cache, manifests and downloads"
    )
    download_dir: str | None = Field(
        default=None, description="Override directory for downloaded cut sheets"
    )
    project_id: str | None = Field(
        default=None, description="Project whose manifest is reconciled"
    )

    model_config = {"frozen": True}


class TransportConfig(BaseModel):
    """Remote file service settings.

    All fields are optional so env vars and CLI args can supply them at
    runtime instead.
    """

    upload_url: str | None = Field(default=None, description="Upload endpoint")
    token: str | None = Field(
        default=None, description="Base64 JSON token carrying apiKey/appId"
    )
    api_key: str | None = Field(default=None, description="API key")
    app_id: str | None = Field(default=None, description="App id")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    timeout: float = Field(
        default=60.0, gt=0, description="Read timeout in seconds"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Reconciliation tuning."""

    max_parallel: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Documents reconciled concurrently (1-64)",
    )
    hash_threshold: int = Field(
        default=50 * 1024 * 1024,
        ge=0,
        description="File size in bytes above which hashing streams",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into ``load_config()`` fallbacks.

    ``None`` values are dropped so built-in defaults still apply.  The
    logging section maps to ``log_level`` and ``log_file``.
    """
    merged: dict[str, Any] = {}
    for section in (unified.storage, unified.transport, unified.sync):
        merged.update(
            {k: v for k, v in section.model_dump().items() if v is not None}
        )
    if unified.logging.file:
        merged["log_file"] = unified.logging.file
    merged["log_level"] = unified.logging.level
    return merged
