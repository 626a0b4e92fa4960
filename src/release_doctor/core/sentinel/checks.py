"""The four endpoint checks.

Each check takes a shared ``httpx.AsyncClient`` and returns a
:class:`CheckOutcome`; transport errors are left to the caller, which turns
them into failed checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from .models import CheckOutcome

if TYPE_CHECKING:
    from ...config import SentinelConfig

FRONTEND_REACHABLE = "frontend_reachable"
BACKEND_HEALTH = "backend_health"
AUTH_LOGIN = "auth_login"
PROXIED_READ = "proxied_read"

CHECK_ORDER = (FRONTEND_REACHABLE, BACKEND_HEALTH, AUTH_LOGIN, PROXIED_READ)

NEXT_STEPS: dict[str, str] = {
    FRONTEND_REACHABLE: "Start the frontend and confirm the base URL answers HTTP requests.",
    BACKEND_HEALTH: "Start the backend and confirm a health endpoint returns 2xx.",
    AUTH_LOGIN: (
        "Verify the login endpoint and the demo credentials "
        "(DOCTOR_LOGIN_IDENTIFIER / DOCTOR_LOGIN_SECRET)."
    ),
    PROXIED_READ: "Check the frontend proxy routing to the backend and the read endpoint's auth.",
}

TOKEN_KEYS = ("accessToken", "access_token")
LIST_KEYS = ("data", "items", "results")


def join_url(base: str, path: str) -> str:
    if not path:
        return base
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def extract_token(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in TOKEN_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def is_list_payload(payload: Any) -> bool:
    if isinstance(payload, list):
        return True
    if isinstance(payload, dict):
        return any(isinstance(payload.get(key), list) for key in LIST_KEYS)
    return False


async def check_frontend_reachable(
    client: httpx.AsyncClient, cfg: SentinelConfig
) -> CheckOutcome:
    resp = await client.get(cfg.base_url)
    return CheckOutcome(ok=True, detail=f"HTTP {resp.status_code}")


async def check_backend_health(client: httpx.AsyncClient, cfg: SentinelConfig) -> CheckOutcome:
    tried: list[str] = []
    for path in cfg.health_paths:
        try:
            resp = await client.get(join_url(cfg.backend_url, path))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            tried.append(f"{path} ({exc.__class__.__name__})")
            continue
        if resp.is_success:
            return CheckOutcome(ok=True, detail=f"{path} -> HTTP {resp.status_code}")
        tried.append(f"{path} (HTTP {resp.status_code})")
    return CheckOutcome(ok=False, detail="No healthy endpoint: " + ", ".join(tried))


async def check_auth_login(client: httpx.AsyncClient, cfg: SentinelConfig) -> CheckOutcome:
    if not cfg.identifier or not cfg.secret:
        return CheckOutcome(ok=False, detail="Login credentials not configured")

    payload = {cfg.identifier_field: cfg.identifier, cfg.secret_field: cfg.secret}
    resp = await client.post(join_url(cfg.backend_url, cfg.login_path), json=payload)
    if not resp.is_success:
        return CheckOutcome(ok=False, detail=f"HTTP {resp.status_code}")
    try:
        token = extract_token(resp.json())
    except ValueError:
        return CheckOutcome(ok=False, detail="Login response is not JSON")
    if token is None:
        return CheckOutcome(ok=False, detail="Login response has no access token")
    return CheckOutcome(ok=True, detail=f"HTTP {resp.status_code}, token received", token=token)


async def check_proxied_read(
    client: httpx.AsyncClient, cfg: SentinelConfig, token: str | None
) -> CheckOutcome:
    if not token:
        return CheckOutcome(ok=False, detail="Skipped: no access token from login")

    resp = await client.get(
        join_url(cfg.base_url, cfg.read_path),
        headers={"Authorization": f"Bearer {token}"},
    )
    if not resp.is_success:
        return CheckOutcome(ok=False, detail=f"HTTP {resp.status_code}")
    try:
        payload = resp.json()
    except ValueError:
        return CheckOutcome(ok=False, detail="Read response is not JSON")
    if not is_list_payload(payload):
        return CheckOutcome(ok=False, detail="Read response is not a list")
    return CheckOutcome(ok=True, detail=f"HTTP {resp.status_code}")
