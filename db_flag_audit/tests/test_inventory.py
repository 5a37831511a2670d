"""Tests for the run-scoped resource inventory cache."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from db_flag_audit.exceptions import EvaluationCancelled, ProviderUnavailable, UnknownInstance
from db_flag_audit.inventory import ResourceInventoryCache


def test_listing_is_fetched_once(make_provider, make_postgres) -> None:
    provider = make_provider([make_postgres("db-1", {}), make_postgres("db-2", {})])
    cache = ResourceInventoryCache(provider, "us-east-1")

    assert cache.list_instance_identifiers() == ("db-1", "db-2")
    assert cache.list_instance_identifiers() == ("db-1", "db-2")
    assert provider.listing_calls == 1
    assert provider.fleets == ["us-east-1"]


def test_detail_is_memoized(make_provider, make_postgres) -> None:
    detail = make_postgres("db-1", {"log_connections": "on"})
    provider = make_provider([detail])
    cache = ResourceInventoryCache(provider, "fleet")

    assert cache.get_detail("db-1") is detail
    assert cache.get_detail("db-1") is detail
    assert provider.detail_calls["db-1"] == 1
    assert cache.provider_calls["fetch_instance_detail"] == 1
    assert cache.provider_calls["fetch_instance_identifiers"] == 1


def test_unknown_instance_is_rejected(make_provider, make_postgres) -> None:
    provider = make_provider([make_postgres("db-1", {})])
    cache = ResourceInventoryCache(provider, "fleet")

    with pytest.raises(UnknownInstance) as excinfo:
        cache.get_detail("db-9")

    assert excinfo.value.identifier == "db-9"
    assert provider.detail_calls["db-9"] == 0


def test_listing_failure_is_not_retried(make_provider) -> None:
    provider = make_provider([], fail_listing=True)
    cache = ResourceInventoryCache(provider, "fleet")

    for _ in range(3):
        with pytest.raises(ProviderUnavailable):
            cache.list_instance_identifiers()

    assert provider.listing_calls == 1


def test_detail_failure_is_memoized(make_provider, make_postgres) -> None:
    provider = make_provider([make_postgres("db-1", {})], failing=["db-1"])
    cache = ResourceInventoryCache(provider, "fleet")

    for _ in range(2):
        with pytest.raises(ProviderUnavailable):
            cache.get_detail("db-1")

    assert provider.detail_calls["db-1"] == 1


def test_concurrent_first_access_is_coalesced(make_provider, make_postgres) -> None:
    """Threads racing on the same identifier share one provider call."""

    provider = make_provider([make_postgres("db-1", {})])
    original = provider.fetch_instance_detail

    def slow_fetch(fleet: str, identifier: str):
        time.sleep(0.05)
        return original(fleet, identifier)

    provider.fetch_instance_detail = slow_fetch
    cache = ResourceInventoryCache(provider, "fleet")
    start = threading.Barrier(8)
    results = []

    def worker() -> None:
        start.wait()
        results.append(cache.get_detail("db-1"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 8
    assert all(result is results[0] for result in results)
    assert provider.detail_calls["db-1"] == 1
    assert provider.listing_calls == 1


def test_cancelled_cache_stops_fetching(make_provider, make_postgres) -> None:
    provider = make_provider([make_postgres("db-1", {})])
    event = threading.Event()
    cache = ResourceInventoryCache(provider, "fleet", cancel_event=event)
    cache.list_instance_identifiers()

    event.set()

    with pytest.raises(EvaluationCancelled):
        cache.get_detail("db-1")
    assert provider.detail_calls["db-1"] == 0
    assert cache.list_instance_identifiers() == ("db-1",)
