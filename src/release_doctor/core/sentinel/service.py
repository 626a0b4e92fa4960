"""Endpoint sentinel: run the checks in order and collect failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx

from ..models import Verdict
from .checks import (
    AUTH_LOGIN,
    BACKEND_HEALTH,
    FRONTEND_REACHABLE,
    NEXT_STEPS,
    PROXIED_READ,
    check_auth_login,
    check_backend_health,
    check_frontend_reachable,
    check_proxied_read,
)
from .models import CheckOutcome, CheckResult, Failure, SentinelReport

if TYPE_CHECKING:
    from ...config import SentinelConfig

logger = logging.getLogger(__name__)


async def _timed(
    name: str, check: Callable[[], Awaitable[CheckOutcome]]
) -> tuple[CheckOutcome, int]:
    """Run one check; transport errors and timeouts become failed outcomes."""
    start = time.perf_counter()
    try:
        outcome = await check()
    except httpx.TimeoutException as exc:
        outcome = CheckOutcome(ok=False, detail=f"Timed out ({exc.__class__.__name__})")
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        outcome = CheckOutcome(ok=False, detail=f"Request failed ({exc.__class__.__name__})")
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    logger.info("Check %s: %s in %dms", name, "ok" if outcome.ok else "FAIL", elapsed_ms)
    return outcome, elapsed_ms


async def run_sentinel(
    config: SentinelConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    now: datetime | None = None,
) -> SentinelReport:
    """Run every check in fixed order; the read check reuses the login token."""
    if config.timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")
    now = now or datetime.now(UTC)
    checks: list[CheckResult] = []
    failures: list[Failure] = []

    def record(name: str, outcome: CheckOutcome, elapsed_ms: int) -> None:
        result = CheckResult(name=name, ok=outcome.ok, elapsed_ms=elapsed_ms, detail=outcome.detail)
        checks.append(result)
        if not outcome.ok:
            failures.append(Failure(**result.model_dump(), next_step=NEXT_STEPS[name]))

    async with httpx.AsyncClient(timeout=config.timeout_s, transport=transport) as client:
        outcome, ms = await _timed(FRONTEND_REACHABLE, lambda: check_frontend_reachable(client, config))
        record(FRONTEND_REACHABLE, outcome, ms)

        outcome, ms = await _timed(BACKEND_HEALTH, lambda: check_backend_health(client, config))
        record(BACKEND_HEALTH, outcome, ms)

        login, ms = await _timed(AUTH_LOGIN, lambda: check_auth_login(client, config))
        record(AUTH_LOGIN, login, ms)

        token = login.token if login.ok else None
        outcome, ms = await _timed(PROXIED_READ, lambda: check_proxied_read(client, config, token))
        record(PROXIED_READ, outcome, ms)

    return SentinelReport(
        status=Verdict.NO_GO if failures else Verdict.GO,
        generated_at=now,
        base_url=config.base_url,
        backend_url=config.backend_url,
        checks=checks,
        failures=failures,
    )
