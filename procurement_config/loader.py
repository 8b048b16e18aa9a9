"""
Configuration loader (``procurement_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into the frozen dataclasses
in ``procurement_config.schema``.  Runtime callers go through
``procurement_config.get_active_config()`` instead of calling this module.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Missing token secret (file and environment) -> ``ValueError``.
* Non-integer numeric settings -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import (
    IdentifierSettings,
    InventorySettings,
    NotificationRoute,
    ProcurementConfig,
    StampSettings,
    TokenSettings,
)

TOKEN_SECRET_ENV = "PROCUREMENT_TOKEN_SECRET"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document (secret excluded)."""
    redacted = json.loads(json.dumps(data, default=str))
    if isinstance(redacted.get("tokens"), dict):
        redacted["tokens"].pop("secret", None)
    canonical = json.dumps(redacted, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_tokens(data: dict[str, Any], environ: dict[str, str]) -> TokenSettings:
    secret = environ.get(TOKEN_SECRET_ENV) or data.get("secret") or ""
    if not secret:
        raise ValueError(
            f"Action token secret is not configured (set tokens.secret or {TOKEN_SECRET_ENV})"
        )
    return TokenSettings(secret=secret, ttl_minutes=_int(data, "ttl_minutes", 4320))


def parse_identifiers(data: dict[str, Any]) -> IdentifierSettings:
    defaults = IdentifierSettings()
    return IdentifierSettings(
        sku_prefix=data.get("sku_prefix", defaults.sku_prefix),
        sku_width=_int(data, "sku_width", defaults.sku_width),
        transaction_prefix=data.get("transaction_prefix", defaults.transaction_prefix),
        transaction_width=_int(data, "transaction_width", defaults.transaction_width),
    )


def parse_notification_route(event: str, data: dict[str, Any]) -> NotificationRoute:
    return NotificationRoute(
        event=event,
        enabled=bool(data.get("enabled", True)),
        recipients=_tuple(data.get("recipients")),
        cc=_tuple(data.get("cc")),
        include_roles=_tuple(data.get("include_roles")),
    )


def parse_config(data: dict[str, Any], environ: dict[str, str] | None = None) -> ProcurementConfig:
    environ = dict(os.environ) if environ is None else environ
    stamps = data.get("stamps") or {}
    inventory = data.get("inventory") or {}
    routes = data.get("notifications") or {}
    return ProcurementConfig(
        name=data.get("name", "default"),
        version=str(data.get("version", "1")),
        tokens=parse_tokens(data.get("tokens") or {}, environ),
        identifiers=parse_identifiers(data.get("identifiers") or {}),
        stamps=StampSettings(
            timezone=stamps.get("timezone", StampSettings.timezone),
            pattern=stamps.get("pattern", StampSettings.pattern),
        ),
        inventory=InventorySettings(
            low_stock_threshold=_int(inventory, "low_stock_threshold", 5),
        ),
        notifications=tuple(
            parse_notification_route(event, route or {})
            for event, route in sorted(routes.items())
        ),
        checksum=compute_checksum(data),
    )
