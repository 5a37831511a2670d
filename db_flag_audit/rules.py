"""Declarative rule specifications for database flag checks.

A :class:`RuleSpecification` is pure data: the flag it targets, the policy the
flag value must satisfy and a predicate deciding which engines the rule covers.
Building a rule never talks to the inventory provider, so one evaluation engine
can interpret any number of them.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, ClassVar, Mapping, Optional, Tuple, Union

from .exceptions import ConfigurationError, MissingParameter

# PostgreSQL message severities, least to most severe. Used by
# log_min_messages and log_min_error_statement.
POSTGRES_SEVERITY_LEVELS: Tuple[str, ...] = (
    "debug5",
    "debug4",
    "debug3",
    "debug2",
    "debug1",
    "info",
    "notice",
    "warning",
    "error",
    "log",
    "fatal",
    "panic",
)

Applicability = Callable[[str], bool]


@dataclass(frozen=True)
class ExactMatch:
    """Case-sensitive equality against a literal or a named parameter."""

    expected: Optional[str] = None
    parameter: Optional[str] = None

    def __post_init__(self) -> None:
        if self.expected is None and self.parameter is None:
            raise ValueError("ExactMatch needs an expected value or a parameter name")

    def bind(self, parameters: Mapping[str, str]) -> "ExactMatch":
        if self.parameter is None:
            return self
        if self.parameter not in parameters:
            raise MissingParameter(self.parameter)
        return replace(self, expected=str(parameters[self.parameter]))

    def is_satisfied_by(self, value: str) -> bool:
        if self.expected is None:
            raise MissingParameter(self.parameter or "")
        return value == self.expected

    def describe(self) -> str:
        if self.expected is None:
            return f"set to the value of parameter '{self.parameter}'"
        return f"set to '{self.expected}'"


@dataclass(frozen=True)
class OrdinalThreshold:
    """Value must be at or beyond a minimum on an ordered severity scale.

    Found values that are not on the scale never satisfy the policy. The
    minimum itself must be on the scale.
    """

    minimum: Optional[str] = None
    parameter: Optional[str] = None
    scale: Tuple[str, ...] = POSTGRES_SEVERITY_LEVELS

    def __post_init__(self) -> None:
        if self.minimum is None and self.parameter is None:
            raise ValueError("OrdinalThreshold needs a minimum or a parameter name")
        if not self.scale:
            raise ValueError("OrdinalThreshold scale must not be empty")
        if self.minimum is not None and self.minimum not in self.scale:
            raise ConfigurationError(
                f"Minimum '{self.minimum}' is not one of: {', '.join(self.scale)}"
            )

    def bind(self, parameters: Mapping[str, str]) -> "OrdinalThreshold":
        if self.parameter is None:
            return self
        if self.parameter not in parameters:
            raise MissingParameter(self.parameter)
        minimum = str(parameters[self.parameter])
        if minimum not in self.scale:
            raise ConfigurationError(
                f"Parameter '{self.parameter}' value '{minimum}' is not one of: "
                f"{', '.join(self.scale)}"
            )
        return replace(self, minimum=minimum)

    def is_satisfied_by(self, value: str) -> bool:
        if self.minimum is None:
            raise MissingParameter(self.parameter or "")
        if value not in self.scale:
            return False
        return self.scale.index(value) >= self.scale.index(self.minimum)

    def describe(self) -> str:
        if self.minimum is None:
            return f"at least the value of parameter '{self.parameter}'"
        return f"set to '{self.minimum}' or stricter"


@dataclass(frozen=True)
class ListContains:
    """A comma separated list value must include *item* (case-sensitive)."""

    item: str
    parameter: ClassVar[Optional[str]] = None

    def __post_init__(self) -> None:
        if not self.item:
            raise ValueError("ListContains needs a non-empty item")

    def bind(self, parameters: Mapping[str, str]) -> "ListContains":
        return self

    def is_satisfied_by(self, value: str) -> bool:
        return self.item in (entry.strip() for entry in value.split(","))

    def describe(self) -> str:
        return f"listing '{self.item}'"


ValuePolicy = Union[ExactMatch, OrdinalThreshold, ListContains]


def any_engine(engine_kind: str) -> bool:
    return True


def engine_family(*names: str) -> Applicability:
    """Return a predicate matching engine kinds that contain any of *names*.

    Matching ignores case so ``postgres``, ``aurora-postgresql`` and
    ``POSTGRES_14`` all belong to the ``postgres`` family.
    """

    needles = tuple(name.lower() for name in names if name)
    if not needles:
        raise ValueError("engine_family needs at least one engine name")

    def predicate(engine_kind: str) -> bool:
        kind = (engine_kind or "").lower()
        return any(needle in kind for needle in needles)

    predicate.__name__ = f"engine_family_{'_'.join(needles)}"
    return predicate


postgres_only = engine_family("postgres")


@dataclass(frozen=True)
class RuleSpecification:
    """One flag compliance check."""

    identity: str
    flag_name: str
    policy: ValuePolicy
    applicability: Applicability = any_engine
    title: str = ""

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("Rule identity must be a non-empty string")
        if not self.flag_name:
            raise ValueError(f"Rule '{self.identity}' needs a flag name")

    @property
    def parameter(self) -> Optional[str]:
        return self.policy.parameter

    def bind(self, parameters: Mapping[str, str]) -> "RuleSpecification":
        """Return a copy whose policy has its external parameter resolved."""

        return replace(self, policy=self.policy.bind(parameters))

    def applies_to(self, engine_kind: str) -> bool:
        return bool(self.applicability(engine_kind))

    def expectation(self) -> str:
        return f"'{self.flag_name}' {self.policy.describe()}"


__all__ = [
    "Applicability",
    "ExactMatch",
    "ListContains",
    "OrdinalThreshold",
    "POSTGRES_SEVERITY_LEVELS",
    "RuleSpecification",
    "ValuePolicy",
    "any_engine",
    "engine_family",
    "postgres_only",
]
