"""Database configuration flag compliance toolkit."""

from __future__ import annotations

from .catalog import DEFAULT_PARAMETERS, RULE_CATALOG, build_rules
from .engine import AuditResults, evaluate, evaluate_instance, run_audit
from .exceptions import (
    AuditError,
    ConfigurationError,
    EvaluationCancelled,
    MissingParameter,
    ProviderUnavailable,
    UnknownInstance,
)
from .findings import FlagSetting, InstanceDetail, OutcomeRecord, OutcomeStatus
from .inventory import ResourceInventoryCache
from .rules import ExactMatch, OrdinalThreshold, RuleSpecification, postgres_only

__all__ = [
    "AuditError",
    "AuditResults",
    "ConfigurationError",
    "DEFAULT_PARAMETERS",
    "EvaluationCancelled",
    "ExactMatch",
    "FlagSetting",
    "InstanceDetail",
    "MissingParameter",
    "OrdinalThreshold",
    "OutcomeRecord",
    "OutcomeStatus",
    "ProviderUnavailable",
    "RULE_CATALOG",
    "ResourceInventoryCache",
    "RuleSpecification",
    "UnknownInstance",
    "build_rules",
    "evaluate",
    "evaluate_instance",
    "postgres_only",
    "run_audit",
]
