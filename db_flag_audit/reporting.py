"""Outcome reporter interface and machine-readable sinks."""
from __future__ import annotations

import json
import threading
from typing import IO, List, Protocol, Sequence

from .findings import OutcomeRecord


class OutcomeReporter(Protocol):
    """Consumer of outcome records.

    Records arrive one rule at a time, in no particular order across rules.
    """

    def report(self, records: Sequence[OutcomeRecord]) -> None:
        ...


class CollectingReporter:
    """Keep every reported record in memory."""

    def __init__(self) -> None:
        self.records: List[OutcomeRecord] = []
        self._lock = threading.Lock()

    def report(self, records: Sequence[OutcomeRecord]) -> None:
        with self._lock:
            self.records.extend(records)


class JsonLinesReporter:
    """Write each record as one JSON object per line to *stream*."""

    def __init__(self, stream: IO[str]) -> None:
        self.stream = stream
        self.count = 0
        self._lock = threading.Lock()

    def report(self, records: Sequence[OutcomeRecord]) -> None:
        with self._lock:
            for record in records:
                self.stream.write(json.dumps(record.to_dict(), sort_keys=True))
                self.stream.write("\n")
                self.count += 1
            self.stream.flush()


__all__ = ["CollectingReporter", "JsonLinesReporter", "OutcomeReporter"]
