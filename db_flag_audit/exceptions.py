"""Exception hierarchy for the database flag audit."""
from __future__ import annotations

from typing import Optional


class AuditError(Exception):
    """Base class for errors raised by the audit toolkit."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ProviderUnavailable(AuditError):
    """The inventory provider could not answer a fetch request."""


class UnknownInstance(AuditError):
    """An instance was requested that the fleet listing never returned."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Instance '{identifier}' is not part of the fleet listing")
        self.identifier = identifier


class ConfigurationError(AuditError):
    """Rule catalog or parameter configuration is invalid."""


class MissingParameter(ConfigurationError):
    """A rule policy refers to a parameter that has no value."""

    def __init__(self, parameter: str) -> None:
        super().__init__(f"No value configured for parameter '{parameter}'")
        self.parameter = parameter


class EvaluationCancelled(AuditError):
    """The evaluation run was cancelled by the caller."""


__all__ = [
    "AuditError",
    "ConfigurationError",
    "EvaluationCancelled",
    "MissingParameter",
    "ProviderUnavailable",
    "UnknownInstance",
]
