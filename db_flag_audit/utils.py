"""Shared helpers for the database flag audit."""
from __future__ import annotations

from typing import Iterable, Iterator, Optional

import boto3
from botocore.exceptions import OperationNotPageableError

from .findings import OutcomeRecord, OutcomeStatus


def safe_paginate(client: boto3.client, method_name: str, result_key: str, **kwargs) -> Iterator[dict]:
    """Iterate through paginated boto3 results while handling pagination gaps."""

    try:
        paginator = client.get_paginator(method_name)
    except OperationNotPageableError:
        response = getattr(client, method_name)(**kwargs)
        for item in response.get(result_key, []):
            yield item
        return

    for page in paginator.paginate(**kwargs):
        for item in page.get(result_key, []):
            yield item


def outcome_from_exception(
    rule_identity: str,
    action: str,
    exc: BaseException,
    *,
    instance_identifier: Optional[str] = None,
) -> OutcomeRecord:
    """Create an ``INDETERMINATE`` :class:`OutcomeRecord` describing *exc*.

    The helper keeps the wording of error outcomes consistent while leaving the
    caller in control of which instance (if any) the failure belongs to.
    """

    action = action.rstrip(".")
    return OutcomeRecord(
        rule_identity=rule_identity,
        status=OutcomeStatus.INDETERMINATE,
        detail=f"{action}: {exc}",
        instance_identifier=instance_identifier,
    )


def quote_values(values: Iterable[str]) -> str:
    """Return *values* as a comma separated list of quoted strings."""

    return ", ".join(f"'{value}'" for value in values)


__all__ = ["outcome_from_exception", "quote_values", "safe_paginate"]
