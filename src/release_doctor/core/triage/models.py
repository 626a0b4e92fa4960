"""Data models for log triage.

Transient scan state uses dataclasses; anything written to a report or the
baseline file is a pydantic model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..models import Severity, Verdict


class FileStatus(str, Enum):
    """Outcome of reading one log file."""

    OK = "OK"
    MISSING = "MISSING"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


class SourceStatus(str, Enum):
    """Aggregate outcome for one named log source."""

    OK = "OK"
    MISSING = "MISSING"
    ERROR = "ERROR"


class FingerprintStatus(str, Enum):
    NEW = "NEW"
    KNOWN = "KNOWN"


@dataclass(frozen=True, slots=True)
class LogSourceConfig:
    """A named origin (e.g. ``backend``) and the files/directories it covers."""

    label: str
    paths: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class IngestOptions:
    max_lines: int = 5000
    since: datetime | None = None
    max_file_size_bytes: int = 512 * 1024 * 1024
    max_read_bytes: int = 8 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One reconstructed log record (a line plus its continuation lines)."""

    source: str
    file_path: str
    lines: tuple[str, ...]
    timestamp: datetime | None = None  # UTC; None when no known grammar matched

    @property
    def message(self) -> str:
        return self.lines[0] if self.lines else ""


class LogFileResult(BaseModel):
    path: str
    status: FileStatus
    reason: str | None = None
    line_count: int = 0


class LogSourceResult(BaseModel):
    label: str
    status: SourceStatus
    files: list[LogFileResult] = Field(default_factory=list)


@dataclass(slots=True)
class IngestResult:
    entries: list[LogEntry]
    sources: list[LogSourceResult]


@dataclass(slots=True)
class FingerprintSummary:
    """Deduplicated error signature; ``count`` grows as occurrences are merged."""

    id: str
    signature: str
    error_name: str
    normalized_message: str
    top_stack_frame: str | None
    endpoint: str | None
    example: LogEntry
    count: int = 1
    sources: list[str] = field(default_factory=list)


class BaselineFile(BaseModel):
    """Persisted set of fingerprint ids already seen by earlier runs."""

    version: int = 1
    initialized: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_run_at: datetime | None = None
    fingerprints: list[str] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BaselineState:
    """Baseline as loaded from ``path``; ``existed`` is False on a fresh install."""

    path: str
    file: BaselineFile
    existed: bool


@dataclass(frozen=True, slots=True)
class MarkedFingerprint:
    fingerprint: FingerprintSummary
    severity: Severity
    status: FingerprintStatus


@dataclass(frozen=True, slots=True)
class MarkResult:
    fingerprints: list[MarkedFingerprint]
    baseline: BaselineFile
    was_cold_start: bool


class RankedFingerprint(BaseModel):
    """One row of the ranked triage table."""

    rank: int
    id: str
    error_name: str
    count: int
    severity: Severity
    status: FingerprintStatus
    endpoint: str | None = None
    signature: str
    normalized_message: str
    top_stack_frame: str | None = None
    sources: list[str] = Field(default_factory=list)
    example_lines: list[str] = Field(default_factory=list)
    known_signature: str | None = None
    likely_cause: str | None = None
    confirm_command: str | None = None


class TriageReport(BaseModel):
    status: Verdict
    generated_at: datetime
    since: datetime | None = None
    sources: list[LogSourceResult] = Field(default_factory=list)
    top_errors: list[RankedFingerprint] = Field(default_factory=list)
    high_severity: list[RankedFingerprint] = Field(default_factory=list)
    total_entries: int = 0
    total_fingerprints: int = 0
    new_fingerprints: int = 0
    baseline_created: bool = False
    report_path: str | None = None

    def top_new(self) -> RankedFingerprint | None:
        """Highest-ranked fingerprint not present in the baseline."""
        for row in self.top_errors:
            if row.status == FingerprintStatus.NEW:
                return row
        return None
