"""Time-window helpers for the log scan.

The scan window only has a lower bound: entries older than ``since`` are
dropped, everything newer is kept.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, tzinfo


def parse_iso_dt(s: str) -> datetime:
    """Parse ISO8601 datetime. If tz is missing, assume UTC."""
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def normalize_ts(ts: datetime, *, default_tz: tzinfo = UTC) -> datetime:
    """Normalize timestamps to timezone-aware UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=default_tz)
    return ts.astimezone(UTC)


def resolve_since(
    *,
    since: datetime | None,
    last_run_at: datetime | None,
    hours_lookback: int,
    now: datetime,
) -> datetime:
    """Pick the scan window origin.

    Precedence: explicit ``since`` > previous run (``last_run_at``) > lookback.
    """
    if since is not None:
        return normalize_ts(since)
    if last_run_at is not None:
        return normalize_ts(last_run_at)
    if hours_lookback < 0:
        raise ValueError("hours_lookback must be >= 0")
    return normalize_ts(now) - timedelta(hours=hours_lookback)
