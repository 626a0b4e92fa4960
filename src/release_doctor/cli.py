from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import replace

from release_doctor.config import DoctorConfig, load_config
from release_doctor.core.conductor import DiagnosticsConductor, DiagnosticsReport
from release_doctor.core.errors import StopError
from release_doctor.core.models import Verdict
from release_doctor.core.schema import SchemaDriftReport, run_schema_drift
from release_doctor.core.sentinel import SentinelReport, run_sentinel
from release_doctor.core.time_window import parse_iso_dt
from release_doctor.core.triage import LogSourceConfig, TriageReport, run_triage

EXIT_GO = 0
EXIT_NO_GO = 1
EXIT_ERROR = 2


def _configure_logging() -> None:
    level_name = os.getenv("DOCTOR_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _exit_code(status: Verdict) -> int:
    return EXIT_GO if status == Verdict.GO else EXIT_NO_GO


def _print_sentinel(report: SentinelReport) -> None:
    print("Endpoint checks:")
    for check in report.checks:
        mark = "ok" if check.ok else "FAIL"
        print(f"  {check.name} → {mark} ({check.elapsed_ms}ms) {check.detail}")
    print(f"Result: {report.status.value}\n")


def _print_drift(report: SchemaDriftReport) -> None:
    print(f"Schema drift ({report.schema_path}):")
    for env in report.environments:
        high = env.drift.summary.high if env.drift else 0
        total = env.drift.summary.total if env.drift else 0
        print(f"  {env.name} [{env.masked_identity}] → {env.status.value} ({total} findings, {high} high)")
        if env.error:
            print(f"    {env.error}")
    print(f"Report: {report.report_path}")
    print(f"Result: {report.status.value}\n")


def _print_triage(report: TriageReport) -> None:
    print("Log sources:")
    for source in report.sources:
        print(f"  {source.label} → {source.status.value}")
    if report.baseline_created:
        print("Baseline initialized from this run.")
    print("Top errors:")
    if not report.top_errors:
        print("  (none)")
    for row in report.top_errors:
        print(f"  {row.rank}. [{row.severity.value}] {row.status.value} x{row.count} {row.signature}")
    print(f"Report: {report.report_path}")
    print(f"Result: {report.status.value}\n")


def _print_aggregate(report: DiagnosticsReport) -> None:
    if report.sentinel:
        _print_sentinel(report.sentinel)
    if report.drift:
        _print_drift(report.drift)
    if report.triage:
        _print_triage(report.triage)
    for stage in report.stages:
        detail = f" ({stage.detail})" if stage.detail else ""
        print(f"Stage {stage.name}: {stage.status.value}{detail}")
    print(f"\n{report.status.value.replace('_', '-')}")
    print(f"Next action: {report.next_action}")
    print(f"Report: {report.report_path}")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="release-doctor",
        description="Release readiness checks: endpoints, schema drift, log triage.",
    )
    p.add_argument("--config", default=None, help="Path to a TOML config file")
    p.add_argument("--reports-dir", default=None, help="Directory for report artifacts")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run every stage and print one GO/NO-GO verdict")

    t = sub.add_parser("triage", help="Fingerprint recent log errors against the baseline")
    t.add_argument("--log", dest="logs", action="append", default=[], help="Log file or directory (repeatable)")
    t.add_argument("--label", default="app", help="Source label for --log paths")
    t.add_argument("--since", default=None, help="ISO8601 start time (assumes UTC if tz missing)")
    t.add_argument("--hours", type=int, default=None, help="Look back N hours when no baseline run exists")
    t.add_argument("--top", type=int, default=None, help="Number of fingerprints to rank")
    t.add_argument("--update-baseline", action="store_true", help="Absorb NEW fingerprints into the baseline")

    d = sub.add_parser("drift", help="Compare the declared schema against each database")
    d.add_argument("--repo-root", default=None)
    d.add_argument("--schema", dest="schema_path", default=None)

    s = sub.add_parser("sentinel", help="Check the live endpoints")
    s.add_argument("--base-url", default=None)
    s.add_argument("--backend-url", default=None)

    sub.add_parser("serve", help="Start the MCP server over stdio")
    return p


def _apply_args(cfg: DoctorConfig, args: argparse.Namespace) -> DoctorConfig:
    if args.reports_dir:
        cfg = replace(cfg, reports_dir=args.reports_dir)

    if args.command == "triage":
        triage = cfg.triage
        if args.logs:
            triage = replace(triage, sources=(LogSourceConfig(args.label, tuple(args.logs)),))
        if args.since:
            triage = replace(triage, since=parse_iso_dt(args.since))
        if args.hours is not None:
            triage = replace(triage, hours_lookback=args.hours)
        if args.top is not None:
            if args.top <= 0:
                raise ValueError("--top must be > 0")
            triage = replace(triage, top_n=args.top)
        if args.update_baseline:
            triage = replace(triage, update_baseline=True)
        cfg = replace(cfg, triage=triage)
    elif args.command == "drift":
        schema = cfg.schema
        if args.repo_root:
            schema = replace(schema, repo_root=args.repo_root)
        if args.schema_path:
            schema = replace(schema, schema_path=args.schema_path)
        cfg = replace(cfg, schema=schema)
    elif args.command == "sentinel":
        sentinel = cfg.sentinel
        if args.base_url:
            sentinel = replace(sentinel, base_url=args.base_url)
        if args.backend_url:
            sentinel = replace(sentinel, backend_url=args.backend_url)
        cfg = replace(cfg, sentinel=sentinel)
    return cfg


async def _run_command(cfg: DoctorConfig, command: str) -> int:
    if command == "run":
        print("RELEASE DOCTOR")
        print("--------------\n")
        report = await DiagnosticsConductor(cfg).run()
        _print_aggregate(report)
        return _exit_code(report.status)
    if command == "triage":
        triage = await run_triage(cfg.triage, reports_dir=cfg.reports_dir)
        _print_triage(triage)
        return _exit_code(triage.status)
    if command == "drift":
        drift = await run_schema_drift(cfg.schema, reports_dir=cfg.reports_dir)
        _print_drift(drift)
        return _exit_code(drift.status)
    sentinel = await run_sentinel(cfg.sentinel)
    _print_sentinel(sentinel)
    return _exit_code(sentinel.status)


def main(argv: Sequence[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    _configure_logging()

    if args.command == "serve":
        from release_doctor.server.mcp_server import main as serve

        serve()
        return

    try:
        cfg = _apply_args(load_config(args.config), args)
        code = asyncio.run(_run_command(cfg, args.command))
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(EXIT_ERROR)
    except (StopError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(EXIT_ERROR)

    raise SystemExit(code)


if __name__ == "__main__":
    main()
