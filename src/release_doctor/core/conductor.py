"""Diagnostics conductor.

Runs sentinel, schema drift and log triage in that order, stops at the first
NO_GO stage, and always writes ``diagnostics-report.json``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, Field

from .errors import StopError
from .models import StageStatus, Verdict
from .reporting import write_json
from .schema.models import SchemaDriftReport
from .schema.service import run_schema_drift
from .sentinel.models import SentinelReport
from .sentinel.service import run_sentinel
from .triage.models import TriageReport
from .triage.service import run_triage

if TYPE_CHECKING:
    from ..config import DoctorConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

SentinelRunner = Callable[[], Awaitable[SentinelReport]]
DriftRunner = Callable[[], Awaitable[SchemaDriftReport]]
TriageRunner = Callable[[], Awaitable[TriageReport]]

STAGE_SENTINEL = "sentinel"
STAGE_DRIFT = "drift"
STAGE_TRIAGE = "triage"
STAGES = (STAGE_SENTINEL, STAGE_DRIFT, STAGE_TRIAGE)

ALL_CLEAR = "All checks passed. Safe to proceed."
SENTINEL_FALLBACK = "Fix sentinel failures before proceeding."


class StageOutcome(BaseModel):
    name: str
    status: StageStatus
    detail: str | None = None


class DiagnosticsReport(BaseModel):
    """Aggregate verdict. Sections of stages that did not run stay ``None``."""

    status: Verdict
    generated_at: datetime
    sentinel: SentinelReport | None = None
    drift: SchemaDriftReport | None = None
    triage: TriageReport | None = None
    stages: list[StageOutcome] = Field(default_factory=list)
    next_action: str = ""
    report_path: str | None = None

    def stage(self, name: str) -> StageOutcome | None:
        for s in self.stages:
            if s.name == name:
                return s
        return None


def sentinel_next_action(report: SentinelReport) -> str:
    first = report.first_failure()
    return first.next_step if first and first.next_step else SENTINEL_FALLBACK


def drift_next_action(report: SchemaDriftReport) -> str:
    problem = report.first_problem() or "see schema-drift-report.md"
    return f"Fix schema drift: {problem}"


def triage_next_action(report: TriageReport) -> str:
    if not report.top_errors:
        return "Address top log error: unknown"
    row = report.top_errors[0]
    action = f"Address top log error: {row.signature}"
    if row.known_signature:
        action += f". Likely cause: {row.likely_cause} Confirm: {row.confirm_command}"
    return action


class DiagnosticsConductor:
    """Sequential stage runner. Stage runners are injectable for tests."""

    def __init__(
        self,
        config: DoctorConfig,
        *,
        sentinel: SentinelRunner | None = None,
        drift: DriftRunner | None = None,
        triage: TriageRunner | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config
        self.now = now
        self._sentinel = sentinel or (lambda: run_sentinel(config.sentinel, now=now))
        self._drift = drift or (
            lambda: run_schema_drift(config.schema, reports_dir=config.reports_dir, now=now)
        )
        self._triage = triage or (
            lambda: run_triage(config.triage, reports_dir=config.reports_dir, now=now)
        )

    async def _run_stage(
        self, name: str, runner: Callable[[], Awaitable[T]]
    ) -> tuple[T | None, str | None]:
        """Return ``(result, None)`` or ``(None, message)`` when the stage raised."""
        logger.info("Running stage %s", name)
        try:
            return await runner(), None
        except StopError as exc:
            logger.error("Stage %s stopped: %s", name, exc)
            return None, str(exc)
        except Exception as exc:
            logger.exception("Stage %s crashed", name)
            return None, f"{exc.__class__.__name__}: {exc}"

    def _halt(self, report: DiagnosticsReport, name: str, next_action: str, detail: str) -> None:
        report.status = Verdict.NO_GO
        report.next_action = next_action
        report.stages.append(StageOutcome(name=name, status=StageStatus.NO_GO, detail=detail))
        ran = {s.name for s in report.stages}
        for remaining in STAGES:
            if remaining not in ran:
                report.stages.append(StageOutcome(name=remaining, status=StageStatus.SKIPPED))

    async def run(self) -> DiagnosticsReport:
        report = DiagnosticsReport(
            status=Verdict.GO,
            generated_at=self.now or datetime.now(UTC),
        )
        await self._execute(report)
        report.report_path = await write_json(self.config.aggregate_report_path, report)
        logger.info("Verdict %s: %s", report.status.value, report.next_action)
        return report

    async def _execute(self, report: DiagnosticsReport) -> None:
        sentinel, error = await self._run_stage(STAGE_SENTINEL, self._sentinel)
        if sentinel is None:
            self._halt(report, STAGE_SENTINEL, f"Resolve sentinel stop condition: {error}", error or "")
            return
        report.sentinel = sentinel
        if sentinel.status == Verdict.NO_GO:
            detail = f"{len(sentinel.failures)} failed check(s)"
            self._halt(report, STAGE_SENTINEL, sentinel_next_action(sentinel), detail)
            return
        report.stages.append(StageOutcome(name=STAGE_SENTINEL, status=StageStatus.GO))

        drift, error = await self._run_stage(STAGE_DRIFT, self._drift)
        if drift is None:
            self._halt(report, STAGE_DRIFT, f"Resolve drift stop condition: {error}", error or "")
            return
        report.drift = drift
        if drift.status == Verdict.NO_GO:
            detail = f"{drift.summary.drifted} drifted, {drift.summary.errored} errored"
            self._halt(report, STAGE_DRIFT, drift_next_action(drift), detail)
            return
        report.stages.append(StageOutcome(name=STAGE_DRIFT, status=StageStatus.GO))

        triage, error = await self._run_stage(STAGE_TRIAGE, self._triage)
        if triage is None:
            self._halt(report, STAGE_TRIAGE, f"Resolve triage stop condition: {error}", error or "")
            return
        report.triage = triage
        if triage.status == Verdict.NO_GO:
            detail = f"{triage.new_fingerprints} new fingerprint(s)"
            self._halt(report, STAGE_TRIAGE, triage_next_action(triage), detail)
            return
        report.stages.append(StageOutcome(name=STAGE_TRIAGE, status=StageStatus.GO))
        report.next_action = ALL_CLEAR
