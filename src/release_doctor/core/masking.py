"""Masking helpers for anything that ends up in logs or reports."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlsplit

_EMAIL_RE = re.compile(r"(?i)\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b")
_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_JWT_RE = re.compile(r"\beyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\b")
_BEARER_RE = re.compile(r"(?i)\b(bearer)\s+[a-zA-Z0-9._~+/=-]{8,}")
_URL_CREDENTIALS_RE = re.compile(r"(?i)\b([a-z][a-z0-9+.-]*://)[^\s/@:]+:[^\s/@]+@")

MASKED = "<masked>"


def mask_database_url(url: str) -> str:
    """Return a connection identity with credentials, host and database hidden."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return MASKED
    if not parts.scheme or not parts.netloc:
        return MASKED
    port_segment = ":***" if port else ""
    return f"{parts.scheme}://***:***@***{port_segment}/***"


def redact_text(text: str) -> str:
    """Redact sensitive tokens from free-form log text."""
    text = _URL_CREDENTIALS_RE.sub(r"\1***:***@", text)
    text = _JWT_RE.sub("<REDACTED_JWT>", text)
    text = _BEARER_RE.sub(r"\1 <REDACTED_TOKEN>", text)
    text = _EMAIL_RE.sub("<REDACTED_EMAIL>", text)
    text = _IPV4_RE.sub("<REDACTED_IP>", text)
    return text


def url_parts(url: str) -> list[str]:
    """Password, user, host and database name of a connection string, longest first."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return []
    raw = [parts.password, parts.username, parts.hostname, parts.path.strip("/")]
    values = {v for v in raw if v} | {unquote(v) for v in raw if v}
    return sorted(values, key=len, reverse=True)


def scrub(text: str, secret: str, replacement: str) -> str:
    """Replace every occurrence of a known secret, then redact the rest.

    When ``secret`` is a connection string, its components are masked too:
    tools such as Prisma quote the host or user on their own, never the URL.
    """
    if secret:
        text = text.replace(secret, replacement)
        for value in url_parts(secret):
            text = re.sub(rf"(?<![\w.-]){re.escape(value)}(?![\w.-])", "***", text)
    return redact_text(text)
