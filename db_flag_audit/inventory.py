"""Run-scoped memoizing cache in front of an inventory provider."""
from __future__ import annotations

import logging
import threading
from collections import Counter
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Tuple, TypeVar

from .exceptions import EvaluationCancelled, UnknownInstance
from .findings import InstanceDetail
from .providers import InventoryProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LISTING_KEY = "listing"


class _SingleFlight:
    """Coalesce concurrent first-time loads of the same key into one call.

    The outcome of the first call, value or exception, is kept and handed to
    every later caller of that key.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[str, Future] = {}

    def do(self, key: str, loader: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._calls[key] = future

        if owner:
            try:
                future.set_result(loader())
            except Exception as exc:
                future.set_exception(exc)
            except BaseException as exc:
                # Interrupted loads are not memoized; the next caller retries.
                with self._lock:
                    self._calls.pop(key, None)
                future.set_exception(exc)
                raise
        return future.result()


class ResourceInventoryCache:
    """Fetch a fleet's inventory once and serve it to every rule of a run.

    The cache has no invalidation: it assumes the fleet does not change while
    one evaluation run is in progress. Create a new cache for each run.
    """

    def __init__(
        self,
        provider: InventoryProvider,
        fleet: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.provider = provider
        self.fleet = fleet
        self.cancel_event = cancel_event or threading.Event()
        self.provider_calls: Counter = Counter()
        self._identifiers: Optional[Tuple[str, ...]] = None
        self._details: Dict[str, InstanceDetail] = {}
        self._gate = _SingleFlight()
        self._calls_lock = threading.Lock()

    def _count_call(self, operation: str) -> None:
        with self._calls_lock:
            self.provider_calls[operation] += 1

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise EvaluationCancelled(f"Evaluation of fleet '{self.fleet}' was cancelled")

    def list_instance_identifiers(self) -> Tuple[str, ...]:
        """Return the fleet's instance identifiers in provider order."""

        identifiers = self._identifiers
        if identifiers is not None:
            return identifiers
        self._check_cancelled()
        return self._gate.do(_LISTING_KEY, self._load_identifiers)

    def _load_identifiers(self) -> Tuple[str, ...]:
        logger.debug("Listing instances of fleet %s", self.fleet)
        self._count_call("fetch_instance_identifiers")
        try:
            identifiers = tuple(self.provider.fetch_instance_identifiers(self.fleet))
        except Exception as exc:
            logger.warning("Failed to list instances of fleet %s: %s", self.fleet, exc)
            raise
        self._identifiers = identifiers
        logger.debug("Fleet %s has %d instance(s)", self.fleet, len(identifiers))
        return identifiers

    def get_detail(self, identifier: str) -> InstanceDetail:
        """Return the configuration of *identifier*, fetching it on first use."""

        detail = self._details.get(identifier)
        if detail is not None:
            return detail
        if identifier not in self.list_instance_identifiers():
            raise UnknownInstance(identifier)
        self._check_cancelled()
        return self._gate.do(f"detail:{identifier}", lambda: self._load_detail(identifier))

    def _load_detail(self, identifier: str) -> InstanceDetail:
        logger.debug("Fetching detail of instance %s in fleet %s", identifier, self.fleet)
        self._count_call("fetch_instance_detail")
        try:
            detail = self.provider.fetch_instance_detail(self.fleet, identifier)
        except Exception as exc:
            logger.warning("Failed to fetch detail of instance %s: %s", identifier, exc)
            raise
        self._details[identifier] = detail
        return detail


__all__ = ["ResourceInventoryCache"]
