"""Log triage: ingestion, fingerprinting, severity, baseline and report."""

from __future__ import annotations

from .models import FingerprintStatus, LogSourceConfig, RankedFingerprint, TriageReport
from .service import rank_fingerprints, run_triage

__all__ = [
    "FingerprintStatus",
    "LogSourceConfig",
    "RankedFingerprint",
    "TriageReport",
    "rank_fingerprints",
    "run_triage",
]
