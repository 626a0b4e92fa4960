"""Markdown rendering for the schema drift report."""

from __future__ import annotations

from pathlib import Path

from .models import EnvironmentStatus, SchemaDriftReport

REPORT_FILE_NAME = "schema-drift-report.md"

SEVERITY_GUIDE = (
    "- HIGH: runtime break risk",
    "- MED: potential mismatch",
    "- LOW: extra/unmapped fields",
)


def render_drift_markdown(report: SchemaDriftReport) -> str:
    lines: list[str] = ["# Schema Drift Report", ""]
    lines.append(f"Generated: {report.generated_at.isoformat()}")
    lines.append(f"Declared schema: {report.schema_path}")
    lines.append(f"Status: {report.status.value}")
    lines.append("")

    counts = report.summary
    lines.append("## Summary")
    lines.append("")
    lines.append(f"- Environments scanned: {counts.scanned}")
    lines.append(f"- PASS: {counts.passed}")
    lines.append(f"- DRIFT DETECTED: {counts.drifted}")
    if counts.errored:
        lines.append(f"- ERROR: {counts.errored}")
    lines.append("")

    for env in report.environments:
        status = "DRIFT DETECTED" if env.status == EnvironmentStatus.DRIFT else env.status.value
        lines.append(f"## Environment: {env.name.upper()}")
        lines.append("")
        lines.append(f"- Status: {status}")
        lines.append(f"- DB identity: {env.masked_identity}")
        lines.append(f"- Source env: {Path(env.env_file).name}")
        lines.append("")

        if env.error:
            lines.append(f"Introspection failed: {env.error}")
            lines.append("")
            continue
        if env.drift is None or not env.drift.findings:
            lines.append("No drift detected.")
            lines.append("")
            continue

        lines.append("### Findings")
        lines.append("")
        lines.extend(f"- [{f.severity.value}] {f.message}" for f in env.drift.findings)
        lines.append("")

    lines.append("## Severity Guide")
    lines.append("")
    lines.extend(SEVERITY_GUIDE)
    lines.append("")
    return "\n".join(lines)
