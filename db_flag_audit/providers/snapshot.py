"""Inventory provider serving a fleet captured in a JSON snapshot."""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..exceptions import ConfigurationError, ProviderUnavailable
from ..findings import FlagSetting, InstanceDetail


class SnapshotInventoryProvider:
    """Serve instance details from memory, keyed by fleet identity."""

    def __init__(
        self,
        fleets: Mapping[str, Iterable[InstanceDetail]],
        *,
        default_fleet: Optional[str] = None,
        platform: str = "cloudsql",
    ) -> None:
        self._fleets: Dict[str, Dict[str, InstanceDetail]] = {}
        for fleet, instances in fleets.items():
            details: Dict[str, InstanceDetail] = {}
            for detail in instances:
                if detail.identifier in details:
                    raise ConfigurationError(
                        f"Duplicate instance '{detail.identifier}' in fleet '{fleet}'"
                    )
                details[detail.identifier] = detail
            self._fleets[fleet] = details
        self.default_fleet = default_fleet
        self.platform = platform

    def _fleet(self, fleet: str) -> Dict[str, InstanceDetail]:
        try:
            return self._fleets[fleet]
        except KeyError:
            raise ProviderUnavailable(f"Snapshot has no fleet named '{fleet}'") from None

    def fetch_instance_identifiers(self, fleet: str) -> List[str]:
        return list(self._fleet(fleet))

    def fetch_instance_detail(self, fleet: str, identifier: str) -> InstanceDetail:
        details = self._fleet(fleet)
        try:
            return details[identifier]
        except KeyError:
            raise ProviderUnavailable(
                f"Snapshot fleet '{fleet}' has no instance '{identifier}'"
            ) from None


def _instance_from_dict(entry: Mapping[str, Any]) -> InstanceDetail:
    try:
        identifier = str(entry["identifier"])
        engine_kind = str(entry["engine_kind"])
    except KeyError as exc:
        raise ConfigurationError(f"Snapshot instance is missing field {exc}") from exc

    raw_flags = entry.get("flags")
    flags = None
    if raw_flags is not None:
        try:
            flags = [
                FlagSetting(name=str(flag["name"]), value=str(flag["value"]))
                for flag in raw_flags
            ]
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(
                f"Snapshot instance '{identifier}' has a malformed flag entry", exc
            ) from exc
    version = entry.get("engine_version")
    return InstanceDetail.build(
        identifier=identifier,
        engine_kind=engine_kind,
        flags=flags,
        engine_version=None if version is None else str(version),
    )


def load_snapshot(path: str) -> SnapshotInventoryProvider:
    """Load a snapshot file of the form ``{"fleet": ..., "instances": [...]}``.

    An optional ``"platform"`` key names where the snapshot was taken
    (``cloudsql`` when absent).
    """

    try:
        with open(path, "r", encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Unable to read snapshot {path}", exc) from exc

    if not isinstance(document, dict):
        raise ConfigurationError(f"Snapshot {path} must contain a JSON object")

    fleet = str(document.get("fleet") or "snapshot")
    instances = [_instance_from_dict(entry) for entry in document.get("instances", [])]
    platform = str(document.get("platform") or "cloudsql")
    return SnapshotInventoryProvider({fleet: instances}, default_fleet=fleet, platform=platform)


__all__ = ["SnapshotInventoryProvider", "load_snapshot"]
