"""Error fingerprinting.

Two occurrences of the same problem ("user 41 not found", "user 9123 not
found") must collapse into one signature, so ids, hex runs and numbers are
replaced by placeholders before hashing.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable, Sequence

from .models import FingerprintSummary, LogEntry

NO_FRAME = "no-frame"
NO_ENDPOINT = "no-endpoint"

_FIVE_XX_RE = re.compile(r"\b5\d\d\b")
_ERROR_WORDS = ("error", "exception", "fail", "fatal", "warn", "unhandled")

_UUID_RE = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.IGNORECASE
)
_HEX_RE = re.compile(r"\b[0-9a-f]{8,}\b", re.IGNORECASE)
_NUM_RE = re.compile(r"\b\d+\b")
_WS_RE = re.compile(r"\s+")

_ERROR_NAME_RE = re.compile(r"\b([A-Z][A-Za-z0-9_]*(?:Error|Exception))\b")
_UNHANDLED_REJECTION_RE = re.compile(r"UnhandledPromiseRejection", re.IGNORECASE)
_UNHANDLED_RE = re.compile(r"Unhandled", re.IGNORECASE)
_FRAME_RE = re.compile(r"^\s*at\s+(.*)$")
_ENDPOINT_RE = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE|OPTIONS|HEAD)\s+(/[^\s\"']*)", re.IGNORECASE)

# Leading "2025-01-01T00:00:00Z [ERROR]" style prefixes.
_PREFIX_RE = re.compile(
    r"^\s*(?:\[?\d{4}[-/]\d{2}[-/]\d{2}[ T]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?\]?"
    r"|[A-Z][a-z]{2}\s+\d{1,2}\s+\d{2}:\d{2}:\d{2})?\s*"
    r"(?:\[?(?:ERROR|WARN(?:ING)?|INFO|DEBUG|TRACE|FATAL|CRITICAL)\]?:?)?\s*",
    re.IGNORECASE,
)


def is_error_like(entry: LogEntry) -> bool:
    """Purely lexical check for error vocabulary or a 5xx code."""
    text = " ".join(entry.lines).lower()
    return any(word in text for word in _ERROR_WORDS) or bool(_FIVE_XX_RE.search(text))


def normalize_message(message: str) -> str:
    message = _UUID_RE.sub("<uuid>", message)
    message = _HEX_RE.sub("<hex>", message)
    message = _NUM_RE.sub("<num>", message)
    return _WS_RE.sub(" ", message).strip()


def extract_error_name(text: str) -> str:
    m = _ERROR_NAME_RE.search(text)
    if m:
        return m.group(1)
    if _UNHANDLED_REJECTION_RE.search(text):
        return "UnhandledPromiseRejection"
    if _UNHANDLED_RE.search(text):
        return "UnhandledError"
    return "UnknownError"


def strip_line_prefix(line: str) -> str:
    """Drop a leading timestamp and level token so they never reach a signature."""
    return _PREFIX_RE.sub("", line, count=1)


def extract_message(lines: Sequence[str], error_name: str) -> str:
    """Text after ``<ErrorName>:``; otherwise the first line without its prefix."""
    for line in lines:
        idx = line.find(error_name)
        if idx < 0:
            continue
        after = line[idx + len(error_name) :].strip()
        if after.startswith(":"):
            return after[1:].strip()
    return strip_line_prefix(lines[0]) if lines else ""


def extract_top_frame(lines: Iterable[str]) -> str | None:
    for line in lines:
        m = _FRAME_RE.match(line)
        if m:
            return m.group(1).strip()
    return None


def extract_endpoint(lines: Iterable[str]) -> str | None:
    for line in lines:
        m = _ENDPOINT_RE.search(line)
        if m:
            return f"{m.group(1).upper()} {normalize_message(m.group(2))}"
    return None


def build_signature(
    error_name: str, message: str, top_frame: str | None, endpoint: str | None
) -> str:
    return "|".join([error_name, message, top_frame or NO_FRAME, endpoint or NO_ENDPOINT])


def fingerprint_id(signature: str) -> str:
    return hashlib.sha1(signature.encode("utf-8"), usedforsecurity=False).hexdigest()


def fingerprint_entries(entries: Iterable[LogEntry]) -> list[FingerprintSummary]:
    """Deduplicate error-like entries into fingerprints, in first-seen order."""
    by_id: dict[str, FingerprintSummary] = {}

    for entry in entries:
        if not is_error_like(entry):
            continue

        error_name = extract_error_name("\n".join(entry.lines))
        message = normalize_message(extract_message(entry.lines, error_name))
        top_frame = extract_top_frame(entry.lines)
        endpoint = extract_endpoint(entry.lines)
        signature = build_signature(error_name, message, top_frame, endpoint)
        fid = fingerprint_id(signature)

        existing = by_id.get(fid)
        if existing is not None:
            existing.count += 1
            if entry.source not in existing.sources:
                existing.sources.append(entry.source)
            continue

        by_id[fid] = FingerprintSummary(
            id=fid,
            signature=signature,
            error_name=error_name,
            normalized_message=message,
            top_stack_frame=top_frame,
            endpoint=endpoint,
            example=entry,
            sources=[entry.source],
        )

    return list(by_id.values())
