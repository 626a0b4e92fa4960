"""Keyword heuristics that tag a fingerprint HIGH, MED or LOW.

The vocabulary below is a starting point; tune it against real log samples
before relying on it for automated gating.
"""

from __future__ import annotations

import re

from ..models import Severity
from .models import FingerprintSummary

_CRASH_RE = re.compile(r"unhandled|uncaught|panic|fatal")
_AUTH_RE = re.compile(r"auth|unauthorized|forbidden|jwt|token|session")
_PERSISTENCE_RE = re.compile(r"prisma|database|\bdb\b|sequelize|mongo|redis|postgres")
_FAILURE_RE = re.compile(r"fail|error|refused|timeout|unavailable")
_FIVE_XX_RE = re.compile(r"\b5\d\d\b")
_INTERNAL_RE = re.compile(r"internal server error")

_CLIENT_RE = re.compile(r"validation|bad request|unprocessable|not found")
_FOUR_XX_RE = re.compile(r"\b4\d\d\b")

_ADVISORY_RE = re.compile(r"warn|deprecated")


def _sample_text(fp: FingerprintSummary) -> str:
    return " ".join([fp.error_name, fp.normalized_message, " ".join(fp.example.lines)]).lower()


def classify_text(text: str) -> Severity:
    """Classify already-lowercased sample text."""
    if (
        _CRASH_RE.search(text)
        or _AUTH_RE.search(text)
        or (_PERSISTENCE_RE.search(text) and _FAILURE_RE.search(text))
        or _FIVE_XX_RE.search(text)
        or _INTERNAL_RE.search(text)
    ):
        return Severity.HIGH

    if _CLIENT_RE.search(text) or _FOUR_XX_RE.search(text):
        return Severity.MED

    if _ADVISORY_RE.search(text):
        return Severity.LOW

    # Unclassified errors still deserve attention.
    return Severity.MED


def classify_severity(fp: FingerprintSummary) -> Severity:
    return classify_text(_sample_text(fp))
