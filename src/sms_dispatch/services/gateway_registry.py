"""Gateway configuration registry.

Holds the externally supplied GatewayConfig records and enforces that
at most one active config is primary. Persistence is the caller's
concern; if a caller persists after each step, a crash between the
reset and the set of `set_primary` leaves zero primaries.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import uuid4

from sms_dispatch.core.exceptions import ConfigurationError, GatewayNotFoundError
from sms_dispatch.core.logging import get_logger

log = get_logger(__name__)


@dataclass
class GatewayConfig:
    """Operator-managed settings for one gateway."""

    name: str
    display_name: str = ""
    is_active: bool = True
    is_primary: bool = False
    api_endpoint: str = ""
    auth_type: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "is_active": self.is_active,
            "is_primary": self.is_primary,
            "api_endpoint": self.api_endpoint,
            "auth_type": self.auth_type,
        }


class GatewayConfigRegistry:
    """In-memory view of the gateway configs.

    Raises:
        ConfigurationError: If more than one active config is primary
            or two configs share a name
    """

    def __init__(self, configs: Iterable[GatewayConfig] = ()):
        self._configs: list[GatewayConfig] = list(configs)
        self._lock = asyncio.Lock()

        names = [c.name for c in self._configs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(
                "Duplicate gateway config names",
                details={"duplicates": duplicates},
            )

        primaries = [c.name for c in self._configs if c.is_active and c.is_primary]
        if len(primaries) > 1:
            raise ConfigurationError(
                "More than one active primary gateway",
                details={"primaries": primaries},
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "GatewayConfigRegistry":
        """Build the registry from the `gateways.registry` settings list."""
        return cls(
            GatewayConfig(
                name=entry.name,
                display_name=entry.display_name or entry.name,
                is_active=entry.is_active,
                is_primary=entry.is_primary,
                api_endpoint=entry.api_endpoint,
                auth_type=entry.auth_type,
            )
            for entry in settings.gateways.registry
        )

    def all(self) -> list[GatewayConfig]:
        return list(self._configs)

    def active(self) -> list[GatewayConfig]:
        return [c for c in self._configs if c.is_active]

    def get(self, name: str) -> GatewayConfig | None:
        for config in self._configs:
            if config.name == name:
                return config
        return None

    def primary(self) -> GatewayConfig | None:
        """The active primary config, if any."""
        for config in self._configs:
            if config.is_active and config.is_primary:
                return config
        return None

    def fallback(self) -> GatewayConfig | None:
        """The first active config that is not primary."""
        for config in self._configs:
            if config.is_active and not config.is_primary:
                return config
        return None

    def _require(self, name: str) -> GatewayConfig:
        config = self.get(name)
        if config is None:
            raise GatewayNotFoundError(
                f"Gateway config '{name}' not found",
                details={"known": [c.name for c in self._configs]},
            )
        return config

    async def set_primary(self, name: str) -> GatewayConfig:
        """Make `name` the only primary gateway.

        Reset and set happen under one lock so concurrent calls leave
        exactly one primary. The name is checked first, so an unknown
        name changes nothing.

        Raises:
            GatewayNotFoundError: If no config has this name
            ConfigurationError: If the config is inactive
        """
        async with self._lock:
            target = self._require(name)
            if not target.is_active:
                raise ConfigurationError(
                    f"Cannot make inactive gateway '{name}' primary",
                    details={"gateway": name},
                )

            for config in self._configs:
                config.is_primary = False
            target.is_primary = True

            log.info("Primary gateway changed", gateway=name)
            return target

    async def set_active(self, name: str, is_active: bool) -> GatewayConfig:
        """Activate or deactivate a gateway.

        Deactivating the primary also clears its primary flag.

        Raises:
            GatewayNotFoundError: If no config has this name
        """
        async with self._lock:
            target = self._require(name)
            current = self.primary()
            if is_active and target.is_primary and current is not None and current is not target:
                # An inactive primary flag must not come back as a second primary
                target.is_primary = False
            target.is_active = is_active
            if not is_active and target.is_primary:
                target.is_primary = False
                log.warning("Primary gateway deactivated", gateway=name)

            log.info("Gateway activity changed", gateway=name, is_active=is_active)
            return target

    def __len__(self) -> int:
        return len(self._configs)

    def __iter__(self):
        return iter(self._configs)
