"""Runtime configuration for cutsheet-sync.

Reads storage, transport, and reconciliation settings from CLI args,
environment variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CUTSHEET_DATA_DIR: Directory for the metadata cache, manifests and
        downloaded cut sheets (default: ./data)
    CUTSHEET_PROJECT_ID: Project whose manifest is reconciled (default: default)
    CUTSHEET_DOWNLOAD_DIR: Where downloaded cut sheets go
        (default: <data_dir>/cut_sheets)
    UPLOADTHING_URL: Upload endpoint
    UPLOADTHING_TOKEN: Base64 JSON token with apiKey/appId
    UPLOADTHING_API_KEY: API key when the token does not carry one
    UPLOADTHING_APP_ID: App id when the token does not carry one
    CUTSHEET_INSECURE: Skip SSL verification (default: false)
    CUTSHEET_DEBUG: Enable debug logging (default: false)
    CUTSHEET_TIMEOUT: Transport read timeout in seconds (default: 60)
    CUTSHEET_MAX_PARALLEL: Concurrent documents per pass (default: 4)
    CUTSHEET_HASH_THRESHOLD: Bytes above which hashing streams (default: 50 MiB)
    LOG_LEVEL, LOG_FILE: Logging defaults (see logger.setup_logging)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL = "https://uploadthing.com/api/uploadFiles"
DEFAULT_HASH_THRESHOLD = 50 * 1024 * 1024


@dataclass
class Config:
    data_dir: str = "data"
    project_id: str = "default"
    download_dir: str | None = None
    upload_url: str = DEFAULT_UPLOAD_URL
    upload_token: str = ""
    api_key: str = ""
    app_id: str = ""
    insecure: bool = False
    debug: bool = False
    timeout: float = 60.0
    max_parallel: int = 4
    hash_threshold: int = DEFAULT_HASH_THRESHOLD
    log_level: str | None = None
    log_file: str | None = None

    @property
    def cache_path(self) -> Path:
        return Path(self.data_dir) / "pdf-cache.json"

    @property
    def manifest_dir(self) -> Path:
        return Path(self.data_dir) / "manifests"

    @property
    def cut_sheet_dir(self) -> Path:
        if self.download_dir:
            return Path(self.download_dir)
        return Path(self.data_dir) / "cut_sheets"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the upload URL, sizes, or limits are invalid.
    """
    config.upload_url = config.upload_url.strip()

    if not config.upload_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid upload URL '{config.upload_url}': must start with http:// or https://"
        )
    if not urlparse(config.upload_url).hostname:
        raise ValueError(
            f"Invalid upload URL '{config.upload_url}': URL must include a hostname"
        )

    if not config.data_dir.strip():
        raise ValueError("Data directory cannot be empty. Set CUTSHEET_DATA_DIR.")

    if not config.project_id.strip():
        raise ValueError("Project id cannot be empty. Set CUTSHEET_PROJECT_ID.")

    if config.timeout <= 0:
        raise ValueError(f"Invalid timeout {config.timeout}: must be positive")

    if not (1 <= config.max_parallel <= 64):
        raise ValueError(
            f"Invalid max_parallel {config.max_parallel}: must be between 1 and 64"
        )

    if config.hash_threshold < 0:
        raise ValueError(
            f"Invalid hash_threshold {config.hash_threshold}: must be non-negative"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, kind: type, fallback):
    raw = os.getenv(key)
    if raw is None:
        return fallback
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"Invalid {key} '{raw}': must be a number") from None


def load_config(
    data_dir: str | None = None,
    project_id: str | None = None,
    upload_url: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        data_dir: Override data directory.
        project_id: Override project id.
        upload_url: Override upload endpoint.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config
            (see ``config_schema.yaml_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any value is invalid after checking all sources.
    """
    fb = yaml_fallbacks or {}
    defaults = Config()

    final_insecure = insecure
    if not final_insecure:
        env_insecure = _get_bool_env("CUTSHEET_INSECURE")
        final_insecure = (
            env_insecure
            if env_insecure is not None
            else bool(fb.get("insecure", False))
        )

    final_debug = debug
    if not final_debug:
        env_debug = _get_bool_env("CUTSHEET_DEBUG")
        final_debug = (
            env_debug if env_debug is not None else bool(fb.get("debug", False))
        )

    config = Config(
        data_dir=data_dir
        or os.getenv("CUTSHEET_DATA_DIR")
        or fb.get("data_dir")
        or defaults.data_dir,
        project_id=project_id
        or os.getenv("CUTSHEET_PROJECT_ID")
        or fb.get("project_id")
        or defaults.project_id,
        download_dir=os.getenv("CUTSHEET_DOWNLOAD_DIR")
        or fb.get("download_dir"),
        upload_url=upload_url
        or os.getenv("UPLOADTHING_URL")
        or fb.get("upload_url")
        or defaults.upload_url,
        upload_token=os.getenv("UPLOADTHING_TOKEN") or fb.get("token") or "",
        api_key=os.getenv("UPLOADTHING_API_KEY") or fb.get("api_key") or "",
        app_id=os.getenv("UPLOADTHING_APP_ID") or fb.get("app_id") or "",
        insecure=final_insecure,
        debug=final_debug,
        timeout=_get_number_env(
            "CUTSHEET_TIMEOUT", float, fb.get("timeout", defaults.timeout)
        ),
        max_parallel=_get_number_env(
            "CUTSHEET_MAX_PARALLEL",
            int,
            fb.get("max_parallel", defaults.max_parallel),
        ),
        hash_threshold=_get_number_env(
            "CUTSHEET_HASH_THRESHOLD",
            int,
            fb.get("hash_threshold", defaults.hash_threshold),
        ),
        log_level=os.getenv("LOG_LEVEL") or fb.get("log_level"),
        log_file=os.getenv("LOG_FILE") or fb.get("log_file"),
    )

    validate_config(config)

    return config
