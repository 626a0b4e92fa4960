"""Markdown rendering for the log triage report."""

from __future__ import annotations

from .models import FileStatus, TriageReport

REPORT_FILE_NAME = "log-triage-report.md"


def _cell(text: str | None) -> str:
    if not text:
        return "-"
    return text.replace("|", "\\|")


def render_triage_markdown(report: TriageReport) -> str:
    lines: list[str] = ["# Log Triage Report", ""]
    lines.append(f"Timestamp: {report.generated_at.isoformat()}")
    since = report.since.isoformat() if report.since else "-"
    lines.append(f"Time window start: {since}")
    lines.append(f"Status: {report.status.value}")
    lines.append("")

    lines.append("## Log Sources Scanned")
    for source in report.sources:
        ok_files = sum(1 for f in source.files if f.status == FileStatus.OK)
        lines.append(f"- {source.label} → {source.status.value} ({ok_files} files)")
        for f in source.files:
            reason = f" ({f.reason})" if f.reason else ""
            lines.append(f"  - {f.path}: {f.status.value}, {f.line_count} lines{reason}")
    lines.append("")

    if report.baseline_created:
        lines.append("## Baseline Initialization")
        lines.append(
            "- Baseline initialized from this run. Future runs will flag new fingerprints."
        )
        lines.append("")

    lines.append("## Top Error Fingerprints")
    if not report.top_errors:
        lines.append("*No error fingerprints found in the selected window.*")
    else:
        lines.append("| Rank | Error | Count | Severity | Status | Endpoint | Signature |")
        lines.append("|------|-------|-------|----------|--------|----------|-----------|")
        for row in report.top_errors:
            lines.append(
                f"| {row.rank} | {_cell(row.error_name)} | {row.count} | {row.severity.value} "
                f"| {row.status.value} | {_cell(row.endpoint)} | {_cell(row.signature)} |"
            )
    lines.append("")

    lines.append("## Highest Risk Issues")
    if not report.high_severity:
        lines.append("*No HIGH severity fingerprints in the top results.*")
    else:
        for row in report.high_severity:
            lines.append(f"- {row.error_name} ({row.count}) → {row.status.value}")
    lines.append("")

    hinted = [row for row in report.top_errors if row.known_signature]
    if hinted:
        lines.append("## Likely Causes")
        for row in hinted:
            lines.append(f"- #{row.rank} {row.known_signature}: {row.likely_cause}")
            lines.append(f"  - Confirm: `{row.confirm_command}`")
        lines.append("")

    lines.append("## Totals")
    lines.append(f"- Entries scanned: {report.total_entries}")
    lines.append(f"- Fingerprints analyzed: {report.total_fingerprints}")
    lines.append(f"- New fingerprints: {report.new_fingerprints}")
    lines.append(f"- Top errors listed: {len(report.top_errors)}")
    lines.append("")
    return "\n".join(lines)
