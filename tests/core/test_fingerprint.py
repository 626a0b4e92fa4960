from __future__ import annotations

from pathlib import Path

import pytest

from release_doctor.core.models import Severity
from release_doctor.core.triage.fingerprint import (
    extract_endpoint,
    extract_error_name,
    fingerprint_entries,
    normalize_message,
)
from release_doctor.core.triage.ingest import ingest_logs
from release_doctor.core.triage.models import IngestOptions, LogEntry, LogSourceConfig
from release_doctor.core.triage.severity import classify_severity


def _entry(*lines: str, source: str = "backend") -> LogEntry:
    return LogEntry(source=source, file_path="app.log", lines=tuple(lines))


def test_normalize_message_replaces_variable_parts() -> None:
    msg = "order 550e8400-e29b-41d4-a716-446655440000 hash deadbeefcafe1234 retry 3   times"
    assert normalize_message(msg) == "order <uuid> hash <hex> retry <num> times"


def test_extract_error_name_fallbacks() -> None:
    assert extract_error_name("TypeError: x is undefined") == "TypeError"
    assert extract_error_name("UnhandledPromiseRejectionWarning: boom") == "UnhandledPromiseRejection"
    assert extract_error_name("Unhandled rejection somewhere") == "UnhandledError"
    assert extract_error_name("something failed") == "UnknownError"


def test_extract_endpoint_normalizes_path() -> None:
    assert extract_endpoint(["POST /api/orders/42/items failed"]) == "POST /api/orders/<num>/items"
    assert extract_endpoint(["no request here"]) is None


def test_same_normalized_fields_give_same_id() -> None:
    a = _entry(
        "2025-12-30T08:00:00Z ERROR NotFoundError: user 41 not found",
        "    at UserService.find (user.ts:1:1)",
    )
    b = _entry(
        "2025-12-31T09:30:00Z ERROR NotFoundError: user 9123 not found",
        "    at UserService.find (user.ts:1:1)",
        source="frontend",
    )
    fps = fingerprint_entries([a, b])

    assert len(fps) == 1
    assert fps[0].count == 2
    assert fps[0].sources == ["backend", "frontend"]
    assert fps[0].example is a


def test_any_differing_field_changes_id() -> None:
    base = ("2025-12-30T08:00:00Z ERROR NotFoundError: user 1 not found", "    at A (a.ts:1:1)")
    other_frame = ("2025-12-30T08:00:00Z ERROR NotFoundError: user 1 not found", "    at B (b.ts:1:1)")
    other_name = ("2025-12-30T08:00:00Z ERROR MissingError: user 1 not found", "    at A (a.ts:1:1)")
    other_endpoint = (
        "2025-12-30T08:00:00Z ERROR NotFoundError: user 1 not found GET /users/1",
        "    at A (a.ts:1:1)",
    )
    fps = fingerprint_entries([_entry(*lines) for lines in (base, other_frame, other_name, other_endpoint)])

    assert len({fp.id for fp in fps}) == 4


def test_unknown_error_ignores_timestamp_prefix() -> None:
    fps = fingerprint_entries(
        [
            _entry("2025-12-30T08:00:00Z ERROR upstream request failed"),
            _entry("2025-12-30T09:15:42Z ERROR upstream request failed"),
        ]
    )
    assert len(fps) == 1
    assert fps[0].error_name == "UnknownError"
    assert fps[0].normalized_message == "upstream request failed"


def test_non_error_entries_are_ignored() -> None:
    assert fingerprint_entries([_entry("2025-12-30T08:00:00Z INFO service started")]) == []


@pytest.mark.asyncio
async def test_three_plus_one_occurrences(tmp_path: Path, write_app_log) -> None:
    log = write_app_log(tmp_path / "app.log")
    # Pad the file with noise so the error lines sit in a large file.
    noise = "2025-12-30T07:00:00Z INFO heartbeat ok\n" * 20000
    original = log.read_text(encoding="utf-8")
    log.write_text(noise + original, encoding="utf-8")

    result = await ingest_logs(
        [LogSourceConfig(label="backend", paths=(str(log),))], IngestOptions()
    )
    fps = fingerprint_entries(result.entries)

    assert len(fps) == 2
    first, second = fps
    assert first.error_name == "NullPointerException"
    assert first.normalized_message == "user <num> not found"
    assert first.count == 3
    assert classify_severity(first) == Severity.MED
    assert second.error_name == "ValidationError"
    assert second.count == 1
