"""Known error signatures with a likely cause and a command to confirm it.

Matching is first-hit over ``KNOWN_SIGNATURES``; order matters when a sample
matches more than one pattern.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class KnownSignature:
    name: str
    pattern: re.Pattern[str]
    likely_cause: str
    confirm_command: str


KNOWN_SIGNATURES: tuple[KnownSignature, ...] = (
    KnownSignature(
        name="PRISMA_SCHEMA_MISMATCH",
        pattern=re.compile(
            r"missing column|PrismaClientKnownRequestError|column .* does not exist",
            re.IGNORECASE,
        ),
        likely_cause=(
            "Database schema is out of sync with the Prisma schema; "
            "a migration is likely pending."
        ),
        confirm_command="npx prisma migrate status",
    ),
    KnownSignature(
        name="AUTH_401_UNAUTHORIZED",
        pattern=re.compile(r"\b401\b|Unauthorized"),
        likely_cause=(
            "Authentication token is missing or expired, or the demo user does not exist."
        ),
        confirm_command="release-doctor sentinel",
    ),
    KnownSignature(
        name="ROUTE_404_NOT_FOUND",
        pattern=re.compile(
            r"404.*route|Cannot (?:GET|POST|PUT|PATCH|DELETE)|route not found", re.IGNORECASE
        ),
        likely_cause="A frontend call hits an API path that the backend does not serve.",
        confirm_command='curl -s -o /dev/null -w "%{http_code}" <backend_url>/<route>',
    ),
    KnownSignature(
        name="CORS_OR_PROXY_ERROR",
        pattern=re.compile(r"CORS|Access-Control|proxy|ECONNREFUSED", re.IGNORECASE),
        likely_cause=(
            "Frontend cannot reach the backend: CORS misconfiguration or a broken proxy rewrite."
        ),
        confirm_command="curl -v <base_url>/api/customers 2>&1 | head -30",
    ),
    KnownSignature(
        name="JSON_PARSE_ERROR",
        pattern=re.compile(r"JSON.*parse|unexpected token|SyntaxError.*JSON", re.IGNORECASE),
        likely_cause=(
            "Backend returned non-JSON (HTML error page, empty body) where JSON was expected."
        ),
        confirm_command="curl -s <backend_url>/<endpoint> | head -5",
    ),
)


def match_known_signature(text: str) -> KnownSignature | None:
    for known in KNOWN_SIGNATURES:
        if known.pattern.search(text):
            return known
    return None
