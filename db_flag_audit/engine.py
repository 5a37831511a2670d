"""Evaluation engine that interprets rule specifications against a fleet."""
from __future__ import annotations

import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .exceptions import AuditError, EvaluationCancelled
from .findings import InstanceDetail, OutcomeRecord, OutcomeStatus
from .inventory import ResourceInventoryCache
from .reporting import OutcomeReporter
from .rules import RuleSpecification
from .utils import outcome_from_exception, quote_values

logger = logging.getLogger(__name__)

EMPTY_FLEET_DETAIL = "no instances in fleet"
NOT_TARGET_ENGINE_DETAIL = "instance does not match target engine"
NO_FLAGS_DETAIL = "instance has no configurable flags"
FLAG_ABSENT_DETAIL = "flag not present"


def _judge(rule: RuleSpecification, detail: InstanceDetail) -> OutcomeRecord:
    """Classify one fetched instance against *rule*."""

    def outcome(status: OutcomeStatus, message: str) -> OutcomeRecord:
        return OutcomeRecord(
            rule_identity=rule.identity,
            status=status,
            detail=message,
            instance_identifier=detail.identifier,
        )

    if not rule.applies_to(detail.engine_kind):
        return outcome(OutcomeStatus.NOT_APPLICABLE, NOT_TARGET_ENGINE_DETAIL)

    if detail.flags is None:
        return outcome(OutcomeStatus.NON_COMPLIANT, NO_FLAGS_DETAIL)

    matches = detail.flags_named(rule.flag_name)
    if not matches:
        return outcome(
            OutcomeStatus.NON_COMPLIANT,
            f"{FLAG_ABSENT_DETAIL}: expected {rule.expectation()}",
        )

    # Every same-named entry is considered; one satisfying value is enough.
    if any(rule.policy.is_satisfied_by(flag.value) for flag in matches):
        return outcome(
            OutcomeStatus.COMPLIANT,
            f"flag '{rule.flag_name}' is {rule.policy.describe()}",
        )

    found = quote_values(dict.fromkeys(flag.value for flag in matches))
    return outcome(
        OutcomeStatus.NON_COMPLIANT,
        f"flag '{rule.flag_name}' has value {found}; expected {rule.expectation()}",
    )


def evaluate_instance(
    rule: RuleSpecification, cache: ResourceInventoryCache, identifier: str
) -> OutcomeRecord:
    """Evaluate *rule* against one instance, converting failures to outcomes.

    :class:`EvaluationCancelled` is the only exception that propagates.
    """

    try:
        detail = cache.get_detail(identifier)
        return _judge(rule, detail)
    except EvaluationCancelled:
        raise
    except AuditError as exc:
        logger.info("Rule %s on %s is indeterminate: %s", rule.identity, identifier, exc)
        return outcome_from_exception(
            rule.identity,
            f"Unable to evaluate instance {identifier}",
            exc,
            instance_identifier=identifier,
        )
    except Exception as exc:
        logger.exception("Unexpected error evaluating %s on %s", rule.identity, identifier)
        return outcome_from_exception(
            rule.identity,
            f"Unexpected error evaluating instance {identifier}",
            exc,
            instance_identifier=identifier,
        )


def _fleet_outcome(rule: RuleSpecification, cache: ResourceInventoryCache) -> Optional[OutcomeRecord]:
    """Return the fleet-level outcome for *rule*, or ``None`` when instances exist."""

    try:
        identifiers = cache.list_instance_identifiers()
    except EvaluationCancelled:
        raise
    except Exception as exc:
        if not isinstance(exc, AuditError):
            logger.exception("Unexpected error listing fleet %s", cache.fleet)
        return outcome_from_exception(
            rule.identity, f"Unable to list instances of fleet {cache.fleet}", exc
        )
    if not identifiers:
        return OutcomeRecord(
            rule_identity=rule.identity,
            status=OutcomeStatus.NOT_APPLICABLE,
            detail=EMPTY_FLEET_DETAIL,
        )
    return None


def evaluate(rule: RuleSpecification, cache: ResourceInventoryCache) -> List[OutcomeRecord]:
    """Evaluate *rule* against every instance served by *cache*.

    Returns one record per instance in listing order, or a single fleet-level
    record when the fleet is empty or cannot be listed. If the run is cancelled
    the records produced so far are returned.
    """

    outcomes: List[OutcomeRecord] = []
    try:
        fleet_outcome = _fleet_outcome(rule, cache)
        if fleet_outcome is not None:
            return [fleet_outcome]
        for identifier in cache.list_instance_identifiers():
            outcomes.append(evaluate_instance(rule, cache, identifier))
    except EvaluationCancelled:
        logger.info(
            "Evaluation of %s cancelled after %d outcome(s)", rule.identity, len(outcomes)
        )
    return outcomes


@dataclass
class AuditResults:
    """Outcomes gathered by :func:`run_audit`."""

    outcomes: List[OutcomeRecord] = field(default_factory=list)
    cancelled: bool = False

    def summary(self) -> Dict[str, int]:
        """Return the number of outcomes per status."""

        counts = Counter(outcome.status.value for outcome in self.outcomes)
        return {status.value: counts.get(status.value, 0) for status in OutcomeStatus}

    def for_rule(self, identity: str) -> List[OutcomeRecord]:
        return [outcome for outcome in self.outcomes if outcome.rule_identity == identity]


def run_audit(
    rules: Iterable[RuleSpecification],
    cache: ResourceInventoryCache,
    reporter: Optional[OutcomeReporter] = None,
    *,
    max_workers: int = 8,
    cancel_event: Optional[threading.Event] = None,
) -> AuditResults:
    """Evaluate *rules* in parallel across rules and instances.

    Each rule's outcomes keep the fleet listing order and are handed to
    *reporter* as soon as the whole rule is done. Rules finish in no particular
    order. Setting *cancel_event* (or interrupting the caller) cancels work that
    has not started; rules that already finished stay reported.
    """

    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    rules = list(rules)
    if cancel_event is not None:
        cache.cancel_event = cancel_event
    results = AuditResults()

    def deliver(records: Sequence[OutcomeRecord]) -> None:
        results.outcomes.extend(records)
        if reporter is not None:
            reporter.report(records)

    # Fleet-level outcomes short-circuit every rule and need no workers.
    pending: List[RuleSpecification] = []
    try:
        for rule in rules:
            fleet_outcome = _fleet_outcome(rule, cache)
            if fleet_outcome is None:
                pending.append(rule)
            else:
                deliver([fleet_outcome])
    except (EvaluationCancelled, KeyboardInterrupt):
        results.cancelled = True
        cache.cancel_event.set()
        logger.warning("Audit of fleet %s cancelled while listing instances", cache.fleet)
        return results
    if not pending:
        return results

    identifiers = cache.list_instance_identifiers()
    logger.info(
        "Evaluating %d rule(s) against %d instance(s) of fleet %s with %d worker(s)",
        len(pending),
        len(identifiers),
        cache.fleet,
        max_workers,
    )

    owners: Dict[Future, int] = {}
    rule_futures: List[List[Future]] = []
    delivered: Set[int] = set()
    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        for index, rule in enumerate(pending):
            futures = [
                executor.submit(evaluate_instance, rule, cache, identifier)
                for identifier in identifiers
            ]
            rule_futures.append(futures)
            for future in futures:
                owners[future] = index

        remaining = [len(futures) for futures in rule_futures]
        for future in as_completed(owners):
            index = owners[future]
            # Re-raises EvaluationCancelled, the only error evaluate_instance lets out.
            future.result()
            remaining[index] -= 1
            if remaining[index] == 0:
                delivered.add(index)
                deliver([f.result() for f in rule_futures[index]])
    except (EvaluationCancelled, KeyboardInterrupt):
        results.cancelled = True
        cache.cancel_event.set()
        executor.shutdown(wait=True, cancel_futures=True)
        # Unfinished rules still hand over the instances they completed.
        for index, futures in enumerate(rule_futures):
            if index in delivered:
                continue
            partial = [
                f.result()
                for f in futures
                if f.done() and not f.cancelled() and f.exception() is None
            ]
            if partial:
                deliver(partial)
        logger.warning(
            "Audit of fleet %s cancelled with %d outcome(s) delivered",
            cache.fleet,
            len(results.outcomes),
        )
        return results
    finally:
        executor.shutdown(wait=True)

    return results


__all__ = [
    "AuditResults",
    "EMPTY_FLEET_DETAIL",
    "FLAG_ABSENT_DETAIL",
    "NOT_TARGET_ENGINE_DETAIL",
    "NO_FLAGS_DETAIL",
    "evaluate",
    "evaluate_instance",
    "run_audit",
]
