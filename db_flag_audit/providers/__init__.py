"""Inventory providers that supply database instance configuration."""
from __future__ import annotations

from typing import Protocol, Sequence

from ..findings import InstanceDetail
from .rds import RdsInventoryProvider
from .snapshot import SnapshotInventoryProvider, load_snapshot


class InventoryProvider(Protocol):
    """Source of fleet listings and per-instance configuration.

    Implementations raise :class:`~db_flag_audit.exceptions.ProviderUnavailable`
    when a request cannot be answered. Pagination and retries are their concern.
    ``platform`` names the catalog variant whose flag names the provider exposes.
    """

    platform: str

    def fetch_instance_identifiers(self, fleet: str) -> Sequence[str]:
        ...

    def fetch_instance_detail(self, fleet: str, identifier: str) -> InstanceDetail:
        ...


__all__ = [
    "InventoryProvider",
    "RdsInventoryProvider",
    "SnapshotInventoryProvider",
    "load_snapshot",
]
