"""Shared value types used by every diagnostics stage."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Finding severity shared by triage, drift and sentinel output."""

    HIGH = "HIGH"
    MED = "MED"
    LOW = "LOW"


class Verdict(str, Enum):
    """Binary release-readiness verdict."""

    GO = "GO"
    NO_GO = "NO_GO"


class StageStatus(str, Enum):
    """How a conductor stage ended."""

    GO = "GO"
    NO_GO = "NO_GO"
    SKIPPED = "SKIPPED"
