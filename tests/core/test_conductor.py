from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from release_doctor.config import DoctorConfig
from release_doctor.core.conductor import ALL_CLEAR, DiagnosticsConductor
from release_doctor.core.errors import StopError
from release_doctor.core.models import Severity, StageStatus, Verdict
from release_doctor.core.schema.models import (
    DriftFinding,
    DriftResult,
    DriftSummary,
    EnvironmentCounts,
    EnvironmentResult,
    EnvironmentStatus,
    SchemaDriftReport,
)
from release_doctor.core.sentinel.models import CheckResult, Failure, SentinelReport
from release_doctor.core.triage.models import FingerprintStatus, RankedFingerprint, TriageReport

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _sentinel(ok: bool = True) -> SentinelReport:
    checks = [CheckResult(name="backend_health", ok=ok, elapsed_ms=3, detail="x")]
    failures = [] if ok else [Failure(**checks[0].model_dump(), next_step="Start the backend.")]
    return SentinelReport(
        status=Verdict.GO if ok else Verdict.NO_GO,
        generated_at=NOW,
        base_url="http://f",
        backend_url="http://b",
        checks=checks,
        failures=failures,
    )


def _drift(high: bool = False) -> SchemaDriftReport:
    findings = (
        [
            DriftFinding(
                severity=Severity.HIGH,
                kind="missing-column",
                model="User",
                field="email",
                message="Missing column: User.email",
            )
        ]
        if high
        else []
    )
    env = EnvironmentResult(
        name="prod",
        env_file=".env.prod",
        masked_identity="postgresql://***:***@***/***",
        status=EnvironmentStatus.DRIFT if high else EnvironmentStatus.PASS,
        drift=DriftResult(findings=findings, summary=DriftSummary(high=len(findings), total=len(findings))),
    )
    return SchemaDriftReport(
        status=Verdict.NO_GO if high else Verdict.GO,
        generated_at=NOW,
        schema_path="prisma/schema.prisma",
        environments=[env],
        summary=EnvironmentCounts(scanned=1, passed=0 if high else 1, drifted=1 if high else 0),
    )


def _triage(new: bool = False) -> TriageReport:
    rows = [
        RankedFingerprint(
            rank=1,
            id="a",
            error_name="TypeError",
            count=4,
            severity=Severity.MED,
            status=FingerprintStatus.KNOWN,
            signature="TypeError|known|no-frame|no-endpoint",
            normalized_message="known",
        ),
        RankedFingerprint(
            rank=2,
            id="b",
            error_name="RangeError",
            count=2,
            severity=Severity.MED,
            status=FingerprintStatus.NEW if new else FingerprintStatus.KNOWN,
            signature="RangeError|fresh|no-frame|no-endpoint",
            normalized_message="fresh",
        ),
    ]
    return TriageReport(
        status=Verdict.NO_GO if new else Verdict.GO,
        generated_at=NOW,
        top_errors=rows,
        new_fingerprints=1 if new else 0,
    )


class Recorder:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def stage(self, name: str, result):
        async def _run():
            self.calls.append(name)
            if isinstance(result, Exception):
                raise result
            return result

        return _run


def _conductor(tmp_path: Path, rec: Recorder, sentinel, drift, triage) -> DiagnosticsConductor:
    return DiagnosticsConductor(
        DoctorConfig(reports_dir=str(tmp_path / "reports")),
        sentinel=rec.stage("sentinel", sentinel),
        drift=rec.stage("drift", drift),
        triage=rec.stage("triage", triage),
        now=NOW,
    )


def _written(tmp_path: Path) -> dict:
    return json.loads((tmp_path / "reports" / "diagnostics-report.json").read_text("utf-8"))


@pytest.mark.asyncio
async def test_all_go(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(tmp_path, rec, _sentinel(), _drift(), _triage()).run()

    assert report.status == Verdict.GO
    assert report.next_action == ALL_CLEAR
    assert rec.calls == ["sentinel", "drift", "triage"]
    assert [s.status for s in report.stages] == [StageStatus.GO] * 3
    assert _written(tmp_path)["status"] == "GO"


@pytest.mark.asyncio
async def test_sentinel_failure_short_circuits(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(tmp_path, rec, _sentinel(ok=False), _drift(), _triage()).run()

    assert report.status == Verdict.NO_GO
    assert report.next_action == "Start the backend."
    assert rec.calls == ["sentinel"]
    assert report.drift is None and report.triage is None
    assert [s.status for s in report.stages] == [
        StageStatus.NO_GO,
        StageStatus.SKIPPED,
        StageStatus.SKIPPED,
    ]
    written = _written(tmp_path)
    assert written["drift"] is None
    assert written["triage"] is None


@pytest.mark.asyncio
async def test_drift_failure_names_first_high_finding(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(tmp_path, rec, _sentinel(), _drift(high=True), _triage()).run()

    assert report.status == Verdict.NO_GO
    assert report.next_action == "Fix schema drift: prod: Missing column: User.email"
    assert rec.calls == ["sentinel", "drift"]


@pytest.mark.asyncio
async def test_triage_failure_names_top_ranked_signature(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(tmp_path, rec, _sentinel(), _drift(), _triage(new=True)).run()

    assert report.status == Verdict.NO_GO
    assert report.next_action == "Address top log error: TypeError|known|no-frame|no-endpoint"


@pytest.mark.asyncio
async def test_triage_failure_carries_likely_cause(tmp_path: Path) -> None:
    rec = Recorder()
    triage = _triage(new=True)
    triage.top_errors[0] = triage.top_errors[0].model_copy(
        update={
            "known_signature": "PRISMA_SCHEMA_MISMATCH",
            "likely_cause": "A migration is pending.",
            "confirm_command": "npx prisma migrate status",
        }
    )

    report = await _conductor(tmp_path, rec, _sentinel(), _drift(), triage).run()

    assert report.next_action == (
        "Address top log error: TypeError|known|no-frame|no-endpoint. "
        "Likely cause: A migration is pending. Confirm: npx prisma migrate status"
    )


@pytest.mark.asyncio
async def test_stop_error_still_writes_report(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(
        tmp_path, rec, _sentinel(), StopError("DATABASE_URL missing in: .env.prod"), _triage()
    ).run()

    assert report.status == Verdict.NO_GO
    assert report.next_action == (
        "Resolve drift stop condition: STOP: DATABASE_URL missing in: .env.prod"
    )
    assert rec.calls == ["sentinel", "drift"]
    assert _written(tmp_path)["stages"][1]["status"] == "NO_GO"


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(tmp_path: Path) -> None:
    rec = Recorder()

    report = await _conductor(tmp_path, rec, RuntimeError("boom"), _drift(), _triage()).run()

    assert report.status == Verdict.NO_GO
    assert report.next_action == "Resolve sentinel stop condition: RuntimeError: boom"
    assert (tmp_path / "reports" / "diagnostics-report.json").is_file()
