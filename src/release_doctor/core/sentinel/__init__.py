"""Endpoint sentinel: live HTTP checks against a deployment."""

from __future__ import annotations

from .checks import CHECK_ORDER, NEXT_STEPS
from .models import CheckResult, Failure, SentinelReport
from .service import run_sentinel

__all__ = [
    "CHECK_ORDER",
    "NEXT_STEPS",
    "CheckResult",
    "Failure",
    "SentinelReport",
    "run_sentinel",
]
