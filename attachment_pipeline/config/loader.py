"""
Config Loader — Load pipeline settings from a master key or individual env vars.

Supports two modes:
1. Master JSON key: Single ATTACHMENT_PIPELINE_CONFIG env var with all settings
2. Individual keys: Separate env vars per setting (override the master key)

## Usage

    # Option 1: Master config (one secret)
    export ATTACHMENT_PIPELINE_CONFIG='{"cloudconvert_api_key": "ey...", "blob_store": "vercel"}'

    # Option 2: Individual keys
    export CLOUDCONVERT_API_KEY="ey..."
    export BLOB_STORE="local"

The only capability flag is the conversion service: without
CLOUDCONVERT_API_KEY, PDFs are stored as-is.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from ..validation import ConfigurationError

logger = logging.getLogger(__name__)

MASTER_CONFIG_VAR = "ATTACHMENT_PIPELINE_CONFIG"


@dataclass
class PipelineSettings:
    """Everything the pipeline reads from the environment."""

    # Conversion service (PDF)
    cloudconvert_api_key: Optional[str] = None
    cloudconvert_api_url: str = "https://api.cloudconvert.com/v2"
    conversion_timeout_seconds: float = 60.0
    conversion_poll_initial_seconds: float = 1.0
    conversion_poll_max_seconds: float = 5.0
    http_timeout_seconds: float = 30.0

    # Images
    image_max_width: int = 1920
    image_max_height: int = 1920
    thumbnail_size: int = 400

    # Storage
    blob_store: str = "local"
    blob_local_dir: str = "data/blobs"
    blob_public_base_url: Optional[str] = None
    blob_read_write_token: Optional[str] = None
    attachments_db: str = "data/attachments.json"

    # HTTP surface
    upload_api_token: Optional[str] = None
    max_upload_bytes: int = 10 * 1024 * 1024

    def has_conversion(self) -> bool:
        """Is the external conversion service configured?"""
        return bool(self.cloudconvert_api_key)

    def has_auth(self) -> bool:
        return bool(self.upload_api_token)

    def resolve_path(self, value: str, root: Path) -> Path:
        path = Path(value)
        return path if path.is_absolute() else root / path

    def to_status_dict(self) -> Dict[str, Any]:
        """Non-secret summary for `config-status`."""
        return {
            "conversion_configured": self.has_conversion(),
            "conversion_timeout_seconds": self.conversion_timeout_seconds,
            "image_max": f"{self.image_max_width}x{self.image_max_height}",
            "thumbnail_size": self.thumbnail_size,
            "blob_store": self.blob_store,
            "attachments_db": self.attachments_db,
            "auth_required": self.has_auth(),
            "max_upload_bytes": self.max_upload_bytes,
        }


def load_settings(environ: Optional[Dict[str, str]] = None) -> PipelineSettings:
    """
    Load settings from master key and/or individual env vars.

    Priority:
    1. Individual environment variables
    2. ATTACHMENT_PIPELINE_CONFIG (master JSON)
    3. Defaults

    Raises:
        ConfigurationError: a value has the wrong type.
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    master_config = env.get(MASTER_CONFIG_VAR)
    if master_config:
        try:
            data = json.loads(master_config)
            values.update(_parse_master_config(data))
            logger.info(f"Loaded configuration from {MASTER_CONFIG_VAR}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid {MASTER_CONFIG_VAR} JSON: {e}")

    for f in fields(PipelineSettings):
        raw = env.get(f.name.upper())
        if raw is not None and raw != "":
            values[f.name] = raw

    return _build(values)


def _parse_master_config(data: Any) -> Dict[str, Any]:
    """Accept lower- or upper-case keys; ignore unknown ones."""
    if not isinstance(data, dict):
        logger.error(f"{MASTER_CONFIG_VAR} must be a JSON object")
        return {}
    known = {f.name for f in fields(PipelineSettings)}
    parsed = {}
    for key, value in data.items():
        name = str(key).lower()
        if name in known and value is not None:
            parsed[name] = value
    return parsed


def _build(values: Dict[str, Any]) -> PipelineSettings:
    settings = PipelineSettings()
    for f in fields(PipelineSettings):
        if f.name not in values:
            continue
        default = getattr(settings, f.name)
        setattr(settings, f.name, _coerce(f.name, values[f.name], default))

    if settings.blob_store not in ("local", "vercel"):
        raise ConfigurationError(f"BLOB_STORE must be 'local' or 'vercel', got '{settings.blob_store}'")
    return settings


def _coerce(name: str, value: Any, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            return str(value).lower() in ("1", "true", "yes", "on")
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name.upper()} must be a number, got '{value}'")
    return str(value)
