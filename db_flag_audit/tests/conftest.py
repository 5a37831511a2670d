"""Shared fixtures for the database flag audit tests."""

from __future__ import annotations

import sys
import threading
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from db_flag_audit.exceptions import ProviderUnavailable
from db_flag_audit.findings import FlagSetting, InstanceDetail


class FakeProvider:
    """In-memory provider that records how often it is called."""

    platform = "cloudsql"

    def __init__(
        self,
        instances: Iterable[InstanceDetail],
        *,
        failing: Iterable[str] = (),
        fail_listing: bool = False,
        listing: Optional[Sequence[str]] = None,
    ) -> None:
        self.instances = {detail.identifier: detail for detail in instances}
        self.failing = set(failing)
        self.fail_listing = fail_listing
        self.listing = list(listing) if listing is not None else list(self.instances)
        self.listing_calls = 0
        self.detail_calls: Counter = Counter()
        self.fleets: List[str] = []
        self._lock = threading.Lock()

    def fetch_instance_identifiers(self, fleet: str) -> List[str]:
        with self._lock:
            self.listing_calls += 1
            self.fleets.append(fleet)
        if self.fail_listing:
            raise ProviderUnavailable("listing failed")
        return list(self.listing)

    def fetch_instance_detail(self, fleet: str, identifier: str) -> InstanceDetail:
        with self._lock:
            self.detail_calls[identifier] += 1
        if identifier in self.failing:
            raise ProviderUnavailable(f"cannot describe {identifier}")
        return self.instances[identifier]


def postgres(identifier: str, flags: Optional[dict] = None, **extra: str) -> InstanceDetail:
    """Build a PostgreSQL instance; ``flags=None`` means no flag collection."""

    settings = None
    if flags is not None:
        settings = [FlagSetting(name=name, value=value) for name, value in flags.items()]
    return InstanceDetail.build(identifier, extra.get("engine_kind", "postgres"), settings)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_postgres():
    return postgres
