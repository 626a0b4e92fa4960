"""Log triage orchestration.

Reads recent logs, groups errors into fingerprints, compares them with the
baseline and writes ``log-triage-report.md``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import StopError
from ..masking import redact_text
from ..models import Severity, Verdict
from ..reporting import write_text
from ..time_window import resolve_since
from .baseline import load_baseline, mark_new_errors, save_baseline
from .fingerprint import fingerprint_entries
from .hints import match_known_signature
from .ingest import discover_log_sources, ingest_logs
from .models import FingerprintStatus, MarkedFingerprint, RankedFingerprint, TriageReport
from .report import REPORT_FILE_NAME, render_triage_markdown
from .severity import classify_severity

if TYPE_CHECKING:
    from ...config import TriageConfig

logger = logging.getLogger(__name__)

EXAMPLE_MAX_LINES = 8


def rank_fingerprints(marked: list[MarkedFingerprint], top_n: int) -> list[RankedFingerprint]:
    """Order by count (descending, ties keep first-seen order) and keep ``top_n``."""
    if top_n <= 0:
        raise ValueError("top_n must be > 0")
    ordered = sorted(marked, key=lambda m: m.fingerprint.count, reverse=True)
    rows: list[RankedFingerprint] = []
    for rank, m in enumerate(ordered[:top_n], start=1):
        fp = m.fingerprint
        known = match_known_signature(
            "\n".join([fp.error_name, fp.normalized_message, *fp.example.lines])
        )
        rows.append(
            RankedFingerprint(
                rank=rank,
                id=fp.id,
                error_name=fp.error_name,
                count=fp.count,
                severity=m.severity,
                status=m.status,
                endpoint=fp.endpoint,
                signature=redact_text(fp.signature),
                normalized_message=redact_text(fp.normalized_message),
                top_stack_frame=fp.top_stack_frame,
                sources=list(fp.sources),
                example_lines=[redact_text(line) for line in fp.example.lines[:EXAMPLE_MAX_LINES]],
                known_signature=known.name if known else None,
                likely_cause=known.likely_cause if known else None,
                confirm_command=known.confirm_command if known else None,
            )
        )
    return rows


async def run_triage(
    config: TriageConfig,
    *,
    reports_dir: str | Path,
    now: datetime | None = None,
) -> TriageReport:
    """Run one triage pass and write its Markdown report.

    Raises
    ------
    StopError
        When no source is configured or discovered, or propagated from
        ingestion when logs are unreadable or oversized.
    """
    now = now or datetime.now(UTC)
    state = await load_baseline(config.baseline_path)
    since = resolve_since(
        since=config.since,
        last_run_at=state.file.last_run_at,
        hours_lookback=config.hours_lookback,
        now=now,
    )
    sources = config.sources
    if not sources:
        sources = discover_log_sources(config.discovery, root=config.repo_root)
        if not sources:
            searched = ", ".join(p for c in config.discovery for p in c.paths)
            raise StopError(f"No log sources configured and none discovered under: {searched}")
        logger.info("Discovered log sources: %s", ", ".join(s.label for s in sources))
    logger.info("Scanning %d log source(s) since %s", len(sources), since.isoformat())

    ingested = await ingest_logs(sources, config.ingest_options(since), now=now)
    fingerprints = fingerprint_entries(ingested.entries)
    classified = [(fp, classify_severity(fp)) for fp in fingerprints]

    marked = mark_new_errors(
        classified,
        state,
        update_baseline=config.update_baseline,
        now=now,
    )
    await save_baseline(marked.baseline, config.baseline_path)
    if marked.was_cold_start:
        logger.info("Baseline initialized with %d fingerprint(s)", len(marked.baseline.fingerprints))

    top = rank_fingerprints(marked.fingerprints, config.top_n)
    has_new_top = any(row.status == FingerprintStatus.NEW for row in top)

    report = TriageReport(
        status=Verdict.NO_GO if has_new_top else Verdict.GO,
        generated_at=now,
        since=since,
        sources=ingested.sources,
        top_errors=top,
        high_severity=[row for row in top if row.severity == Severity.HIGH],
        total_entries=len(ingested.entries),
        total_fingerprints=len(fingerprints),
        new_fingerprints=sum(
            1 for m in marked.fingerprints if m.status == FingerprintStatus.NEW
        ),
        baseline_created=marked.was_cold_start,
    )
    path = Path(reports_dir) / REPORT_FILE_NAME
    report.report_path = await write_text(path, render_triage_markdown(report))
    return report
