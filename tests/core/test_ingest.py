from __future__ import annotations

import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from release_doctor.core.errors import StopError
from release_doctor.core.triage.ingest import (
    collect_log_files,
    discover_log_sources,
    extract_timestamp,
    ingest_logs,
    parse_log_entries,
    read_last_lines,
)
from release_doctor.core.triage.models import (
    FileStatus,
    IngestOptions,
    LogSourceConfig,
    SourceStatus,
)


def test_extract_timestamp_formats() -> None:
    now = datetime(2025, 6, 1, tzinfo=UTC)

    iso = extract_timestamp("2025-05-01T10:00:00.123Z [ERROR] boom")
    assert iso == datetime(2025, 5, 1, 10, 0, 0, 123000, tzinfo=UTC)

    comma = extract_timestamp("2025-05-01 10:00:00,500 ERROR boom")
    assert comma == datetime(2025, 5, 1, 10, 0, 0, 500000, tzinfo=UTC)

    slash = extract_timestamp("2025/05/01 10:00:00 [error] upstream")
    assert slash == datetime(2025, 5, 1, 10, 0, 0, tzinfo=UTC)

    syslog = extract_timestamp("May  1 10:00:00 host app: failure", now=now)
    assert syslog == datetime(2025, 5, 1, 10, 0, 0, tzinfo=UTC)

    assert extract_timestamp("    at Foo.bar (foo.ts:1:1)") is None


def test_syslog_timestamp_in_future_rolls_back_a_year() -> None:
    now = datetime(2025, 1, 2, tzinfo=UTC)
    ts = extract_timestamp("Dec 31 23:00:00 host app: failure", now=now)
    assert ts == datetime(2024, 12, 31, 23, 0, 0, tzinfo=UTC)


def test_parse_log_entries_attaches_continuation_lines() -> None:
    lines = [
        "2025-12-30T08:00:00Z ERROR TypeError: x is undefined",
        "    at handler (src/app.ts:1:1)",
        "    at next (src/app.ts:2:2)",
        "",
        "[WARN] deprecated call",
        "continuation",
        "INFO plain start",
    ]
    entries = parse_log_entries(lines, source="backend", file_path="app.log")

    assert [len(e.lines) for e in entries] == [3, 2, 1]
    assert entries[0].timestamp == datetime(2025, 12, 30, 8, 0, 0, tzinfo=UTC)
    assert entries[1].timestamp is None
    assert entries[1].message == "[WARN] deprecated call"


def test_parse_log_entries_since_keeps_untimestamped() -> None:
    lines = [
        "2025-12-30T08:00:00Z ERROR old",
        "2025-12-30T10:00:00Z ERROR new",
        "[ERROR] no timestamp",
    ]
    since = datetime(2025, 12, 30, 9, 0, 0, tzinfo=UTC)
    entries = parse_log_entries(lines, source="s", file_path="f", since=since)

    assert [e.message for e in entries] == ["2025-12-30T10:00:00Z ERROR new", "[ERROR] no timestamp"]


@pytest.mark.asyncio
async def test_read_last_lines_is_bounded(tmp_path: Path) -> None:
    log = tmp_path / "big.log"
    all_lines = [f"2025-12-30T08:00:00Z INFO line {i:06d}" for i in range(20000)]
    log.write_text("\n".join(all_lines) + "\n", encoding="utf-8")
    assert log.stat().st_size > 100_000

    out = await read_last_lines(log, max_lines=10, max_read_bytes=100_000)
    assert out == all_lines[-10:]

    tiny = await read_last_lines(log, max_lines=10, max_read_bytes=100)
    assert 0 < len(tiny) < 10
    assert tiny == all_lines[-len(tiny) :]


@pytest.mark.asyncio
async def test_read_last_lines_small_file_returns_everything(tmp_path: Path) -> None:
    log = tmp_path / "small.log"
    log.write_text("a\nb\nc", encoding="utf-8")

    assert await read_last_lines(log, max_lines=10, max_read_bytes=1024) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_read_last_lines_keeps_first_line_on_line_boundary(tmp_path: Path) -> None:
    log = tmp_path / "edge.log"
    log.write_bytes(b"aaaa\nbbbb\ncccc\n")

    aligned = await read_last_lines(log, max_lines=10, max_read_bytes=10, chunk_size=5)
    assert aligned == ["bbbb", "cccc"]

    mid_line = await read_last_lines(log, max_lines=10, max_read_bytes=8, chunk_size=5)
    assert mid_line == ["cccc"]


def test_collect_log_files_includes_rotations_and_skips_gz(tmp_path: Path) -> None:
    (tmp_path / "app.log").write_text("x\n", encoding="utf-8")
    (tmp_path / "app.log.1").write_text("y\n", encoding="utf-8")
    (tmp_path / "app.log.2.gz").write_bytes(b"")
    (tmp_path / "other.txt").write_text("z\n", encoding="utf-8")

    by_file = collect_log_files(str(tmp_path / "app.log"))
    assert [p.name for p in by_file.files] == ["app.log", "app.log.1"]

    by_dir = collect_log_files(str(tmp_path))
    assert [p.name for p in by_dir.files] == ["app.log", "app.log.1"]

    missing = collect_log_files(str(tmp_path / "nope.log"))
    assert missing.missing and missing.files == []


def test_discover_log_sources_keeps_directories_with_logs(tmp_path: Path, write_lines) -> None:
    write_lines(tmp_path / "backend" / "logs" / "server.log", ["boom"])
    write_lines(tmp_path / "frontend" / ".next" / "server" / "next-error.txt", ["boom"])
    (tmp_path / "logs").mkdir()
    (tmp_path / "backend" / "tmp").mkdir()
    candidates = (
        LogSourceConfig("app", ("logs",)),
        LogSourceConfig("backend", ("backend/logs", "backend/tmp")),
        LogSourceConfig("frontend", ("frontend/logs", "frontend/.next/server")),
    )

    found = discover_log_sources(candidates, root=tmp_path)

    assert [(s.label, s.paths) for s in found] == [
        ("backend", (str(tmp_path / "backend" / "logs"),)),
        ("frontend", (str(tmp_path / "frontend" / ".next" / "server"),)),
    ]


def test_discover_log_sources_keeps_absolute_paths(tmp_path: Path, write_lines) -> None:
    write_lines(tmp_path / "pm2" / "api-error.log", ["boom"])

    found = discover_log_sources(
        (LogSourceConfig("pm2", (str(tmp_path / "pm2"),)),), root=tmp_path / "elsewhere"
    )

    assert found == (LogSourceConfig("pm2", (str(tmp_path / "pm2"),)),)


@pytest.mark.asyncio
async def test_ingest_logs_reports_sources(tmp_path: Path, write_app_log) -> None:
    log = write_app_log(tmp_path / "backend.log")
    sources = [
        LogSourceConfig(label="backend", paths=(str(log),)),
        LogSourceConfig(label="frontend", paths=(str(tmp_path / "missing.log"),)),
    ]

    result = await ingest_logs(sources, IngestOptions())

    assert len(result.entries) == 5
    backend, frontend = result.sources
    assert backend.status == SourceStatus.OK
    assert backend.files[0].status == FileStatus.OK
    assert backend.files[0].line_count == 8
    assert frontend.status == SourceStatus.MISSING


@pytest.mark.asyncio
async def test_ingest_logs_explicit_gz_is_skipped(tmp_path: Path, write_app_log) -> None:
    log = write_app_log(tmp_path / "app.log")
    gz = tmp_path / "old.log.gz"
    gz.write_bytes(b"\x1f\x8b")
    sources = [LogSourceConfig(label="app", paths=(str(log), str(gz)))]

    result = await ingest_logs(sources, IngestOptions())

    statuses = [f.status for f in result.sources[0].files]
    assert statuses == [FileStatus.OK, FileStatus.SKIPPED]


@pytest.mark.asyncio
async def test_ingest_logs_stops_when_nothing_readable(tmp_path: Path) -> None:
    sources = [LogSourceConfig(label="app", paths=(str(tmp_path / "missing.log"),))]

    with pytest.raises(StopError, match="No logs accessible"):
        await ingest_logs(sources, IngestOptions())


@pytest.mark.asyncio
async def test_ingest_logs_stops_on_oversized_file(tmp_path: Path, write_app_log) -> None:
    log = write_app_log(tmp_path / "app.log")
    sources = [LogSourceConfig(label="app", paths=(str(log),))]

    with pytest.raises(StopError, match="too large"):
        await ingest_logs(sources, IngestOptions(max_file_size_bytes=10))


@pytest.mark.asyncio
@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs non-root POSIX")
async def test_ingest_logs_stops_on_permission_error(tmp_path: Path, write_app_log) -> None:
    log = write_app_log(tmp_path / "app.log")
    log.chmod(0)
    sources = [LogSourceConfig(label="app", paths=(str(log),))]
    try:
        with pytest.raises(StopError, match="Permission denied"):
            await ingest_logs(sources, IngestOptions())
    finally:
        log.chmod(0o644)


@pytest.mark.asyncio
async def test_ingest_logs_rejects_bad_options(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        await ingest_logs([], IngestOptions(max_lines=0))
