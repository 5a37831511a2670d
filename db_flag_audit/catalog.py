"""Catalog of PostgreSQL logging flag checks (CIS section 6.2)."""
from __future__ import annotations

import json
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from .exceptions import ConfigurationError
from .rules import ExactMatch, ListContains, OrdinalThreshold, RuleSpecification, postgres_only

# Organization-defined values for rules whose expected value is a parameter.
DEFAULT_PARAMETERS: Mapping[str, str] = MappingProxyType(
    {
        "log_error_verbosity": "default",
        "log_statement": "ddl",
        "log_min_messages": "warning",
        "log_min_error_statement": "error",
    }
)


class RuleRegistry:
    """Registry that stores rule specifications by identity."""

    def __init__(self) -> None:
        self._rules: Dict[str, RuleSpecification] = {}

    @staticmethod
    def _normalize(identity: str) -> str:
        if not identity:
            raise ValueError("Rule identity must be a non-empty string")
        return identity.strip().lower()

    def register(self, rule: RuleSpecification) -> RuleSpecification:
        normalized = self._normalize(rule.identity)
        if normalized in self._rules and self._rules[normalized] != rule:
            raise ValueError(f"Rule '{rule.identity}' is already registered")
        self._rules[normalized] = rule
        return rule

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, str):
            return False
        return self._normalize(identity) in self._rules

    def __getitem__(self, identity: str) -> RuleSpecification:
        return self._rules[self._normalize(identity)]

    def __len__(self) -> int:
        return len(self._rules)

    def keys(self) -> Iterator[str]:
        return iter(self._rules)

    def values(self) -> Iterator[RuleSpecification]:
        return iter(self._rules.values())

    def as_mapping(self) -> Mapping[str, RuleSpecification]:
        return MappingProxyType(self._rules)


RULE_CATALOG = RuleRegistry()
register_rule = RULE_CATALOG.register

register_rule(
    RuleSpecification(
        identity="cis-6.2.1-db",
        flag_name="log_error_verbosity",
        policy=ExactMatch(parameter="log_error_verbosity"),
        applicability=postgres_only,
        title="Ensure 'log_error_verbosity' is set to 'DEFAULT' or stricter",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.2-db",
        flag_name="log_connections",
        policy=ExactMatch("on"),
        applicability=postgres_only,
        title="Ensure 'log_connections' is set to 'on'",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.3-db",
        flag_name="log_disconnections",
        policy=ExactMatch("on"),
        applicability=postgres_only,
        title="Ensure 'log_disconnections' is set to 'on'",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.4-db",
        flag_name="log_statement",
        policy=ExactMatch(parameter="log_statement"),
        applicability=postgres_only,
        title="Ensure 'log_statement' is set appropriately",
    )
)
# Always compared against 'on'; there is no log_hostname parameter.
register_rule(
    RuleSpecification(
        identity="cis-6.2.5-db",
        flag_name="log_hostname",
        policy=ExactMatch("on"),
        applicability=postgres_only,
        title="Ensure 'log_hostname' is set to 'on'",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.6-db",
        flag_name="log_min_messages",
        policy=OrdinalThreshold(parameter="log_min_messages"),
        applicability=postgres_only,
        title="Ensure 'log_min_messages' is set to at least 'warning'",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.7-db",
        flag_name="log_min_error_statement",
        policy=OrdinalThreshold(parameter="log_min_error_statement"),
        applicability=postgres_only,
        title="Ensure 'log_min_error_statement' is set to 'error' or stricter",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.8-db",
        flag_name="log_min_duration_statement",
        policy=ExactMatch("-1"),
        applicability=postgres_only,
        title="Ensure 'log_min_duration_statement' is set to '-1' (disabled)",
    )
)
register_rule(
    RuleSpecification(
        identity="cis-6.2.9-db",
        flag_name="cloudsql.enable_pgaudit",
        policy=ExactMatch("on"),
        applicability=postgres_only,
        title="Ensure 'cloudsql.enable_pgaudit' is set to 'on'",
    )
)

# Rules whose flag is named differently on a platform. Cloud SQL is the
# catalog default; RDS enables pgaudit by preloading the library.
PLATFORM_VARIANTS: Mapping[str, Mapping[str, RuleSpecification]] = MappingProxyType(
    {
        "cloudsql": MappingProxyType({}),
        "rds": MappingProxyType(
            {
                "cis-6.2.9-db": RuleSpecification(
                    identity="cis-6.2.9-db",
                    flag_name="shared_preload_libraries",
                    policy=ListContains("pgaudit"),
                    applicability=postgres_only,
                    title="Ensure 'shared_preload_libraries' loads 'pgaudit'",
                ),
            }
        ),
    }
)
DEFAULT_PLATFORM = "cloudsql"


def load_parameters(path: str) -> Dict[str, str]:
    """Read a JSON object of parameter names to values from *path*."""

    try:
        with open(path, "r", encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Unable to read parameters from {path}", exc) from exc

    if not isinstance(document, dict):
        raise ConfigurationError(f"Parameter file {path} must contain a JSON object")
    return {str(name): str(value) for name, value in document.items()}


def parse_parameter_overrides(overrides: Iterable[str]) -> Dict[str, str]:
    """Parse ``NAME=VALUE`` strings into a mapping."""

    parameters: Dict[str, str] = {}
    for override in overrides:
        name, sep, value = override.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ConfigurationError(
                f"Invalid parameter override '{override}'. Expected NAME=VALUE"
            )
        parameters[name] = value.strip()
    return parameters


def build_rules(
    parameters: Optional[Mapping[str, str]] = None,
    rule_ids: Optional[Iterable[str]] = None,
    *,
    platform: str = DEFAULT_PLATFORM,
    registry: RuleRegistry = RULE_CATALOG,
) -> List[RuleSpecification]:
    """Return the selected rules with their parameters bound.

    *parameters* are layered on top of :data:`DEFAULT_PARAMETERS`. Rules with a
    variant for *platform* in :data:`PLATFORM_VARIANTS` are swapped for it.
    Raises a :class:`ValueError` for unknown rule ids or platforms and
    :class:`~db_flag_audit.exceptions.MissingParameter` when a selected rule
    needs a parameter that has no value.
    """

    if platform not in PLATFORM_VARIANTS:
        valid = ", ".join(sorted(PLATFORM_VARIANTS))
        raise ValueError(f"Unknown platform '{platform}'. Valid platforms: {valid}")
    variants = PLATFORM_VARIANTS[platform]

    merged = dict(DEFAULT_PARAMETERS)
    merged.update(parameters or {})

    if rule_ids is None:
        selected = list(registry.values())
    else:
        requested = list(dict.fromkeys(rule_ids))
        missing = [identity for identity in requested if identity not in registry]
        if missing:
            valid = ", ".join(sorted(registry.keys()))
            raise ValueError(
                f"Unknown rule(s): {', '.join(missing)}. Valid rules: {valid}"
            )
        selected = [registry[identity] for identity in requested]

    selected = [variants.get(rule.identity, rule) for rule in selected]
    return [rule.bind(merged) for rule in selected]


__all__ = [
    "DEFAULT_PARAMETERS",
    "DEFAULT_PLATFORM",
    "PLATFORM_VARIANTS",
    "RULE_CATALOG",
    "RuleRegistry",
    "build_rules",
    "load_parameters",
    "parse_parameter_overrides",
    "register_rule",
]
