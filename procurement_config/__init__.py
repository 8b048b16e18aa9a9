"""
procurement_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain settings: token
    secret and TTL, identifier prefixes, stamp timezone, low-stock
    threshold and notification routing.  YAML parsing lives in ``loader``.

Resolution order for the configuration file:
    1. ``config_path`` argument
    2. ``PROCUREMENT_CONFIG_PATH`` environment variable
    3. ``procurement_config/sets/default.yaml``

The token secret may always be supplied through ``PROCUREMENT_TOKEN_SECRET``,
which wins over the file.

Audit relevance:
    Each load emits a ``procurement_config_loaded`` log entry with the
    config name, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from procurement_config.loader import load_yaml_file, parse_config
from procurement_config.schema import (
    IdentifierSettings,
    InventorySettings,
    NotificationRoute,
    ProcurementConfig,
    StampSettings,
    TokenSettings,
)

_logger = logging.getLogger("procurement_kernel.config")

CONFIG_PATH_ENV = "PROCUREMENT_CONFIG_PATH"
_DEFAULT_CONFIG = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "IdentifierSettings",
    "InventorySettings",
    "NotificationRoute",
    "ProcurementConfig",
    "StampSettings",
    "TokenSettings",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> ProcurementConfig:
    """Load and parse the active configuration set."""
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG)
    config = parse_config(load_yaml_file(path))
    _logger.info(
        "procurement_config_loaded",
        extra={
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "path": str(path),
        },
    )
    return config
