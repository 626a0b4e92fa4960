"""Exception types for operational faults.

Findings (drift, error fingerprints, failed checks) are never raised; they are
returned as data. Only conditions that make a report untrustworthy end up here.
"""

from __future__ import annotations


class DiagnosticsError(Exception):
    """Base class for diagnostics failures."""


class StopError(DiagnosticsError):
    """Operational fault that aborts the current stage (misconfiguration, oversized input...)."""

    def __init__(self, message: str) -> None:
        if not message.startswith("STOP:"):
            message = f"STOP: {message}"
        super().__init__(message)


class IntrospectionError(DiagnosticsError):
    """The external schema introspection tool failed for one environment."""

    def __init__(self, environment: str, message: str) -> None:
        self.environment = environment
        super().__init__(f"{environment}: {message}")
