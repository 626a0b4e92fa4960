"""Log source reader.

Locates log files for each named source, tail-reads a bounded amount of each
and rebuilds multi-line entries (stack traces stay attached to the line that
started them).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiofiles

from ..errors import StopError
from ..time_window import normalize_ts, parse_iso_dt
from .models import (
    FileStatus,
    IngestOptions,
    IngestResult,
    LogEntry,
    LogFileResult,
    LogSourceConfig,
    LogSourceResult,
    SourceStatus,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
ENCODING = "utf-8"
DECODE_ERRORS = "replace"

_ISO_RE = re.compile(
    r"\b(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?)"
)
_SLASH_RE = re.compile(r"\b(\d{4}/\d{2}/\d{2})[ T](\d{2}:\d{2}:\d{2})\b")
_SYSLOG_RE = re.compile(r"\b([A-Z][a-z]{2})\s+(\d{1,2})\s+(\d{2}):(\d{2}):(\d{2})\b")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_LEVELS = r"(?:ERROR|WARN(?:ING)?|INFO|DEBUG|TRACE|FATAL|CRITICAL)"
_BRACKET_LEVEL_RE = re.compile(rf"^\[{_LEVELS}\]", re.IGNORECASE)
_LEADING_LEVEL_RE = re.compile(rf"^{_LEVELS}\b", re.IGNORECASE)


def extract_timestamp(line: str, *, now: datetime | None = None) -> datetime | None:
    """Return the first recognized timestamp in ``line`` as aware UTC."""
    m = _ISO_RE.search(line)
    if m:
        try:
            return parse_iso_dt(m.group(1).replace(",", "."))
        except ValueError:
            pass

    m = _SLASH_RE.search(line)
    if m:
        try:
            naive = datetime.strptime(f"{m.group(1)} {m.group(2)}", "%Y/%m/%d %H:%M:%S")
            return naive.replace(tzinfo=UTC)
        except ValueError:
            pass

    m = _SYSLOG_RE.search(line)
    if m and m.group(1) in _MONTHS:
        now = now or datetime.now(UTC)
        try:
            ts = datetime(
                now.year,
                _MONTHS.index(m.group(1)) + 1,
                int(m.group(2)),
                int(m.group(3)),
                int(m.group(4)),
                int(m.group(5)),
                tzinfo=UTC,
            )
        except ValueError:
            return None
        # Syslog has no year; a date in the future belongs to last year.
        if ts > now + timedelta(days=1):
            ts = ts.replace(year=now.year - 1)
        return ts

    return None


def is_entry_start(line: str, timestamp: datetime | None) -> bool:
    """A new entry starts on a timestamped line or a leading level token."""
    if timestamp is not None:
        return True
    return bool(_BRACKET_LEVEL_RE.match(line) or _LEADING_LEVEL_RE.match(line))


def parse_log_entries(
    lines: Iterable[str],
    *,
    source: str,
    file_path: str,
    since: datetime | None = None,
    now: datetime | None = None,
) -> list[LogEntry]:
    """Group raw lines into entries and drop those older than ``since``."""
    entries: list[LogEntry] = []
    current: list[str] = []
    current_ts: datetime | None = None

    def flush() -> None:
        if current:
            entries.append(
                LogEntry(
                    source=source,
                    file_path=file_path,
                    lines=tuple(current),
                    timestamp=current_ts,
                )
            )

    for raw in lines:
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        ts = extract_timestamp(line, now=now)
        if is_entry_start(line, ts) or not current:
            flush()
            current = [line]
            current_ts = ts
            continue
        current.append(line)
    flush()

    if since is None:
        return entries
    since = normalize_ts(since)
    # Entries without a timestamp are always kept.
    return [e for e in entries if e.timestamp is None or e.timestamp >= since]


async def read_last_lines(
    path: Path,
    *,
    max_lines: int,
    max_read_bytes: int,
    chunk_size: int = CHUNK_SIZE,
) -> list[str]:
    """Read at most ``max_read_bytes`` from the end of ``path``.

    Reading stops as soon as more than ``max_lines`` lines are buffered, so
    memory stays bounded regardless of file size.
    """
    size = path.stat().st_size
    if size == 0 or max_lines <= 0:
        return []

    chunks: list[bytes] = []
    position = size
    total = 0
    newlines = 0

    async with aiofiles.open(path, "rb") as f:
        while position > 0 and total < max_read_bytes:
            read_size = min(chunk_size, position, max_read_bytes - total)
            position -= read_size
            await f.seek(position)
            chunk = await f.read(read_size)
            chunks.append(chunk)
            total += len(chunk)
            newlines += chunk.count(b"\n")
            if newlines > max_lines:
                break

        # The window starts mid-line unless the byte before it is a newline.
        cut = False
        if position > 0:
            await f.seek(position - 1)
            cut = await f.read(1) != b"\n"

    text = b"".join(reversed(chunks)).decode(ENCODING, errors=DECODE_ERRORS)
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if cut and lines:
        lines = lines[1:]
    return lines[-max_lines:]


def _resolve_home(target: str) -> Path:
    return Path(target).expanduser()


def _is_log_file_name(name: str) -> bool:
    if name.endswith(".gz"):
        return False
    return name.endswith(".log") or ".log." in name or "error" in name.lower()


def _is_rotated(name: str, base_name: str) -> bool:
    return name.startswith(base_name + ".") and not name.endswith(".gz")


@dataclass(frozen=True, slots=True)
class _Collected:
    resolved: Path
    files: list[Path]
    missing: bool


def collect_log_files(target: str) -> _Collected:
    """Expand a configured path into the concrete files to read."""
    resolved = _resolve_home(target)
    if not resolved.exists():
        return _Collected(resolved, [], True)

    if resolved.is_dir():
        files = sorted(
            p for p in resolved.iterdir() if p.is_file() and _is_log_file_name(p.name)
        )
        return _Collected(resolved, files, False)

    if not resolved.is_file():
        return _Collected(resolved, [], True)

    rotated = sorted(
        p
        for p in resolved.parent.iterdir()
        if p.is_file() and _is_rotated(p.name, resolved.name)
    )
    return _Collected(resolved, [resolved, *rotated], False)


def discover_log_sources(
    candidates: Sequence[LogSourceConfig], *, root: str | Path = "."
) -> tuple[LogSourceConfig, ...]:
    """Keep the candidate directories that exist and hold at least one log file.

    Relative paths resolve against ``root``. Candidates left with no directory
    are dropped.
    """
    base = _resolve_home(str(root))
    found: list[LogSourceConfig] = []
    for candidate in candidates:
        paths: list[str] = []
        for target in candidate.paths:
            p = _resolve_home(target)
            if not p.is_absolute():
                p = base / p
            try:
                if p.is_dir() and any(
                    c.is_file() and _is_log_file_name(c.name) for c in p.iterdir()
                ):
                    paths.append(str(p))
            except OSError as exc:
                logger.debug("Skipping log directory %s: %s", p, exc)
        if paths:
            found.append(LogSourceConfig(label=candidate.label, paths=tuple(paths)))
    return tuple(found)


def _source_status(files: Sequence[LogFileResult]) -> SourceStatus:
    if any(f.status == FileStatus.OK for f in files):
        return SourceStatus.OK
    if any(f.status == FileStatus.ERROR for f in files):
        return SourceStatus.ERROR
    return SourceStatus.MISSING


async def ingest_logs(
    sources: Sequence[LogSourceConfig],
    options: IngestOptions,
    *,
    now: datetime | None = None,
) -> IngestResult:
    """Read every configured source and return reconstructed entries.

    Raises
    ------
    StopError
        On permission errors, files above ``max_file_size_bytes``, or when no
        file could be read at all.
    """
    if options.max_lines <= 0:
        raise ValueError("max_lines must be > 0")
    if options.max_read_bytes <= 0:
        raise ValueError("max_read_bytes must be > 0")

    entries: list[LogEntry] = []
    results: list[LogSourceResult] = []
    accessible = 0

    for source in sources:
        file_results: list[LogFileResult] = []

        for target in source.paths:
            try:
                collected = collect_log_files(target)
            except PermissionError as exc:
                raise StopError(f"Permission denied listing {target}") from exc

            if collected.missing:
                file_results.append(
                    LogFileResult(path=str(collected.resolved), status=FileStatus.MISSING)
                )
                continue
            if not collected.files:
                file_results.append(
                    LogFileResult(
                        path=str(collected.resolved),
                        status=FileStatus.MISSING,
                        reason="No .log files found",
                    )
                )
                continue

            for path in collected.files:
                if path.suffix.lower() == ".gz":
                    file_results.append(
                        LogFileResult(
                            path=str(path),
                            status=FileStatus.SKIPPED,
                            reason="Compressed logs not supported",
                        )
                    )
                    continue

                try:
                    size = path.stat().st_size
                    if size > options.max_file_size_bytes:
                        raise StopError(f"File too large to process ({path}, {size} bytes)")
                    lines = await read_last_lines(
                        path,
                        max_lines=options.max_lines,
                        max_read_bytes=options.max_read_bytes,
                    )
                except PermissionError as exc:
                    raise StopError(f"Permission denied reading {path}") from exc
                except OSError as exc:
                    logger.warning("Failed to read %s: %s", path, exc)
                    file_results.append(
                        LogFileResult(path=str(path), status=FileStatus.ERROR, reason=str(exc))
                    )
                    continue

                entries.extend(
                    parse_log_entries(
                        lines,
                        source=source.label,
                        file_path=str(path),
                        since=options.since,
                        now=now,
                    )
                )
                accessible += 1
                file_results.append(
                    LogFileResult(path=str(path), status=FileStatus.OK, line_count=len(lines))
                )

        results.append(
            LogSourceResult(
                label=source.label,
                status=_source_status(file_results),
                files=file_results,
            )
        )

    if accessible == 0:
        raise StopError("No logs accessible")

    logger.debug("Ingested %d entries from %d files", len(entries), accessible)
    return IngestResult(entries=entries, sources=results)
