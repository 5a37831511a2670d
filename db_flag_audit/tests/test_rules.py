"""Tests for rule specifications and value policies."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from db_flag_audit.exceptions import ConfigurationError, MissingParameter
from db_flag_audit.rules import (
    ExactMatch,
    ListContains,
    OrdinalThreshold,
    RuleSpecification,
    engine_family,
    postgres_only,
)


SIMPLE_SCALE = ("debug", "info", "warning", "error", "fatal")


def test_exact_match_is_case_sensitive() -> None:
    policy = ExactMatch("on")

    assert policy.is_satisfied_by("on")
    assert not policy.is_satisfied_by("ON")
    assert not policy.is_satisfied_by("off")


def test_ordinal_threshold_accepts_stricter_values() -> None:
    """Values at or beyond the minimum satisfy the threshold."""

    policy = OrdinalThreshold(minimum="warning", scale=SIMPLE_SCALE)

    assert policy.is_satisfied_by("error")
    assert policy.is_satisfied_by("warning")
    assert not policy.is_satisfied_by("info")


def test_ordinal_threshold_fails_closed_outside_scale() -> None:
    policy = OrdinalThreshold(minimum="warning", scale=SIMPLE_SCALE)

    assert not policy.is_satisfied_by("WARNING")
    assert not policy.is_satisfied_by("loud")
    assert not policy.is_satisfied_by("")


def test_ordinal_threshold_rejects_minimum_outside_scale() -> None:
    """A misconfigured minimum is a configuration error, not a finding."""

    with pytest.raises(ConfigurationError):
        OrdinalThreshold(minimum="bogus", scale=SIMPLE_SCALE)
    with pytest.raises(ConfigurationError, match="log_min_messages"):
        OrdinalThreshold(parameter="log_min_messages").bind({"log_min_messages": "WARNING"})
    with pytest.raises(ConfigurationError):
        OrdinalThreshold(parameter="level", scale=SIMPLE_SCALE).bind({"level": "warn"})


def test_ordinal_threshold_default_scale_is_postgres() -> None:
    policy = OrdinalThreshold(minimum="warning")

    assert policy.is_satisfied_by("panic")
    assert not policy.is_satisfied_by("notice")


def test_parameter_policies_bind_values() -> None:
    exact = ExactMatch(parameter="log_statement").bind({"log_statement": "ddl"})
    ordinal = OrdinalThreshold(parameter="level").bind({"level": "error"})

    assert exact.expected == "ddl"
    assert exact.is_satisfied_by("ddl")
    assert ordinal.minimum == "error"
    assert ordinal.is_satisfied_by("fatal")


def test_unbound_parameter_raises() -> None:
    policy = ExactMatch(parameter="log_statement")

    with pytest.raises(MissingParameter):
        policy.bind({})
    with pytest.raises(MissingParameter):
        policy.is_satisfied_by("ddl")


def test_policy_requires_expected_value_or_parameter() -> None:
    with pytest.raises(ValueError):
        ExactMatch()
    with pytest.raises(ValueError):
        OrdinalThreshold()


def test_postgres_only_matches_engine_variants() -> None:
    assert postgres_only("postgres")
    assert postgres_only("aurora-postgresql")
    assert postgres_only("POSTGRES_14")
    assert not postgres_only("mysql")
    assert not postgres_only("")


def test_engine_family_accepts_several_names() -> None:
    predicate = engine_family("mysql", "mariadb")

    assert predicate("mariadb")
    assert predicate("aurora-mysql")
    assert not predicate("postgres")


def test_rule_bind_returns_new_rule() -> None:
    rule = RuleSpecification(
        identity="r1",
        flag_name="log_statement",
        policy=ExactMatch(parameter="log_statement"),
        applicability=postgres_only,
    )

    bound = rule.bind({"log_statement": "all"})

    assert bound is not rule
    assert rule.policy.expected is None
    assert bound.policy.expected == "all"
    assert bound.parameter == "log_statement"
    assert "'log_statement' set to 'all'" == bound.expectation()


def test_rule_requires_identity_and_flag() -> None:
    with pytest.raises(ValueError):
        RuleSpecification(identity="", flag_name="x", policy=ExactMatch("on"))
    with pytest.raises(ValueError):
        RuleSpecification(identity="r", flag_name="", policy=ExactMatch("on"))


def test_list_contains_matches_whole_entries() -> None:
    policy = ListContains("pgaudit")

    assert policy.is_satisfied_by("pgaudit")
    assert policy.is_satisfied_by("pg_stat_statements, pgaudit")
    assert not policy.is_satisfied_by("pg_stat_statements")
    assert not policy.is_satisfied_by("pgaudit_ext,PGAUDIT")
    assert policy.bind({}) is policy
    assert policy.parameter is None
