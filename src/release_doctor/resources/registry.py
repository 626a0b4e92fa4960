"""MCP resource registry.

Resources expose the report artifacts written by the last run, plus the JSON
schemas of the reports.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from release_doctor.config import load_config
from release_doctor.core.conductor import DiagnosticsReport
from release_doctor.core.schema.report import REPORT_FILE_NAME as DRIFT_REPORT
from release_doctor.core.triage.report import REPORT_FILE_NAME as TRIAGE_REPORT

AGGREGATE_REPORT = "diagnostics-report.json"
REPORT_FILES = (AGGREGATE_REPORT, DRIFT_REPORT, TRIAGE_REPORT)
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "replace"


# Set by the tools once a run has resolved its config; wins over load_config().
_active_reports_dir: Path | None = None


def set_reports_dir(path: str | Path) -> None:
    """Point the report resources at the directory the last run wrote to."""
    global _active_reports_dir
    _active_reports_dir = Path(path).resolve()


def _reports_dir() -> Path:
    """Return the resolved reports directory."""
    if _active_reports_dir is not None:
        return _active_reports_dir
    return Path(load_config().reports_dir).resolve()


def _safe_resolve(name: str) -> Path:
    """Resolve a report name under the reports directory."""
    if name not in REPORT_FILES:
        allowed = ", ".join(REPORT_FILES)
        raise ValueError(f"Unknown report. Allowed: {allowed}.")
    base = _reports_dir()
    p = (base / name).resolve()
    if base not in p.parents:
        raise ValueError("Path escapes reports dir")
    return p


def read_report(name: str) -> str:
    p = _safe_resolve(name)
    if not p.is_file():
        raise FileNotFoundError(f"Report not written yet: {p}")
    return p.read_text(encoding=TEXT_ENCODING, errors=TEXT_ERRORS)


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://release-doctor/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        return (
            "Resources:\n"
            "- app://release-doctor/help\n"
            "- app://release-doctor/schemas/diagnostics-report\n"
            "- report://{name} (one of: " + ", ".join(REPORT_FILES) + ")\n"
            f"\nReports directory: {_reports_dir()}\n"
        )

    @mcp.resource("app://release-doctor/schemas/diagnostics-report")
    def diagnostics_schema() -> dict[str, Any]:
        """Return the JSON schema of the aggregate report."""
        return DiagnosticsReport.model_json_schema()

    @mcp.resource("report://{name}")
    async def report_resource(name: str) -> str:
        """Return the contents of a report written by the last run."""
        return await asyncio.to_thread(read_report, name)
