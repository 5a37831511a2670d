"""Data models for database flag audit outcomes and inventory."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class OutcomeStatus(str, Enum):
    """Terminal result of evaluating one rule against one instance."""

    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    INDETERMINATE = "INDETERMINATE"


@dataclass(frozen=True)
class FlagSetting:
    """A single configuration flag exposed by a database instance."""

    name: str
    value: str


@dataclass(frozen=True)
class InstanceDetail:
    """Configuration state of one managed database instance at fetch time.

    ``flags`` is ``None`` when the instance exposes no flag collection at all,
    which is a different state from an empty tuple. Flag names are not
    guaranteed to be unique.
    """

    identifier: str
    engine_kind: str
    flags: Optional[Tuple[FlagSetting, ...]] = None
    engine_version: Optional[str] = None

    @classmethod
    def build(
        cls,
        identifier: str,
        engine_kind: str,
        flags: Optional[Iterable[FlagSetting]],
        engine_version: Optional[str] = None,
    ) -> "InstanceDetail":
        """Return an instance detail, freezing *flags* into a tuple."""

        frozen = None if flags is None else tuple(flags)
        return cls(
            identifier=identifier,
            engine_kind=engine_kind,
            flags=frozen,
            engine_version=engine_version,
        )

    def flags_named(self, name: str) -> Tuple[FlagSetting, ...]:
        """Return every flag entry called *name*, in collection order."""

        if self.flags is None:
            return ()
        return tuple(flag for flag in self.flags if flag.name == name)


@dataclass(frozen=True)
class OutcomeRecord:
    """Result of evaluating one rule against one instance or an empty fleet."""

    rule_identity: str
    status: OutcomeStatus
    detail: str
    instance_identifier: Optional[str] = None

    @property
    def is_fleet_level(self) -> bool:
        return self.instance_identifier is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule": self.rule_identity,
            "instance": self.instance_identifier,
            "status": self.status.value,
            "detail": self.detail,
        }


__all__ = ["FlagSetting", "InstanceDetail", "OutcomeRecord", "OutcomeStatus"]
