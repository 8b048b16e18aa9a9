"""
Configuration schema (``procurement_config.schema``).

Frozen dataclasses produced by the loader.  Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TokenSettings:
    """Signed action token settings. ``secret`` is the HMAC key."""

    secret: str
    ttl_minutes: int = 4320


@dataclass(frozen=True)
class IdentifierSettings:
    sku_prefix: str = "YDC-PROC"
    sku_width: int = 4
    transaction_prefix: str = "YDC-PROC-TRX"
    transaction_width: int = 6


@dataclass(frozen=True)
class StampSettings:
    timezone: str = "UTC"
    pattern: str = "%m/%d/%Y, %I:%M:%S %p"


@dataclass(frozen=True)
class InventorySettings:
    low_stock_threshold: int = 5


@dataclass(frozen=True)
class NotificationRoute:
    """Routing for one notification event. Role recipients are resolved at send time."""

    event: str
    enabled: bool = True
    recipients: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    include_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcurementConfig:
    name: str
    version: str
    tokens: TokenSettings
    identifiers: IdentifierSettings = field(default_factory=IdentifierSettings)
    stamps: StampSettings = field(default_factory=StampSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    notifications: tuple[NotificationRoute, ...] = ()
    checksum: str = ""

    def route(self, event: str) -> NotificationRoute:
        """Route for ``event``; unconfigured events are enabled with no fixed recipients."""
        for r in self.notifications:
            if r.event == event:
                return r
        return NotificationRoute(event=event)
