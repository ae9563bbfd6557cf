# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Immutable registry of configured sites.

The registry is built once at startup by the configuration loader and then
only read. Lookups are exact, case-sensitive string matches; there is no
prefix or fuzzy matching. Because the underlying mapping is a read-only
proxy created during construction, concurrent readers need no locking.

Example:
    Resolving a site::

        registry = TenantRegistry([TenantConfig(key="acme", ...)])
        tenant = registry.resolve("acme")
        if tenant is None:
            ...  # unknown site
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from .errors import ConfigError
from .models import TenantConfig


class TenantRegistry(Mapping[str, TenantConfig]):
    """Read-only mapping from site key to :class:`TenantConfig`."""

    def __init__(self, tenants: Iterable[TenantConfig] = ()):
        """Build the registry.

        Args:
            tenants: Site configurations. Keys must be unique.

        Raises:
            ConfigError: If two configurations share the same key.
        """
        by_key: dict[str, TenantConfig] = {}
        for tenant in tenants:
            if tenant.key in by_key:
                raise ConfigError(f"duplicate site key {tenant.key!r}")
            by_key[tenant.key] = tenant
        self._tenants = MappingProxyType(by_key)

    def resolve(self, key: str) -> TenantConfig | None:
        """Return the configuration for ``key`` or None if it is unknown."""
        return self._tenants.get(key)

    def __getitem__(self, key: str) -> TenantConfig:
        return self._tenants[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tenants)

    def __len__(self) -> int:
        return len(self._tenants)

    def __repr__(self) -> str:
        return f"TenantRegistry({sorted(self._tenants)!r})"
