"""Baseline of previously seen fingerprints.

``load_baseline`` and ``save_baseline`` are the only functions touching the
filesystem; ``mark_new_errors`` is pure so it can be tested without one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from ..models import Severity
from .models import (
    BaselineFile,
    BaselineState,
    FingerprintStatus,
    FingerprintSummary,
    MarkedFingerprint,
    MarkResult,
)

logger = logging.getLogger(__name__)


async def load_baseline(path: str | Path) -> BaselineState:
    """Load the baseline file; a missing or corrupt file yields an empty baseline."""
    p = Path(path)
    if not p.is_file():
        return BaselineState(path=str(p), file=BaselineFile(), existed=False)

    try:
        async with aiofiles.open(p, encoding="utf-8") as f:
            raw = await f.read()
        file = BaselineFile.model_validate_json(raw)
    except (OSError, ValidationError, ValueError) as exc:
        logger.warning("Baseline at %s is unreadable, starting empty: %s", p, exc)
        return BaselineState(path=str(p), file=BaselineFile(), existed=True)

    return BaselineState(path=str(p), file=file, existed=True)


def mark_new_errors(
    fingerprints: Sequence[tuple[FingerprintSummary, Severity]],
    state: BaselineState,
    *,
    update_baseline: bool,
    now: datetime | None = None,
) -> MarkResult:
    """Tag each fingerprint NEW or KNOWN and compute the next baseline.

    On a cold start every current fingerprint is absorbed before statuses are
    computed, so the first run never reports NEW items.
    """
    now = now or datetime.now(UTC)
    baseline = state.file.model_copy(deep=True)
    was_cold_start = not baseline.initialized
    known: dict[str, None] = dict.fromkeys(baseline.fingerprints)

    if was_cold_start:
        for fp, _ in fingerprints:
            known.setdefault(fp.id)
        baseline.created_at = now
        baseline.initialized = True

    marked = [
        MarkedFingerprint(
            fingerprint=fp,
            severity=severity,
            status=FingerprintStatus.KNOWN if fp.id in known else FingerprintStatus.NEW,
        )
        for fp, severity in fingerprints
    ]

    if update_baseline:
        for fp, _ in fingerprints:
            known.setdefault(fp.id)
        baseline.updated_at = now

    baseline.fingerprints = list(known)
    baseline.last_run_at = now
    if baseline.updated_at is None:
        baseline.updated_at = now

    return MarkResult(fingerprints=marked, baseline=baseline, was_cold_start=was_cold_start)


async def save_baseline(baseline: BaselineFile, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(p, "w", encoding="utf-8") as f:
        await f.write(baseline.model_dump_json(indent=2) + "\n")
