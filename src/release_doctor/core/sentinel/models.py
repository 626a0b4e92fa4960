"""Endpoint check results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from ..models import Verdict


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """What a single check observed; ``token`` is only set by a successful login."""

    ok: bool
    detail: str
    token: str | None = None


class CheckResult(BaseModel):
    name: str
    ok: bool
    elapsed_ms: int
    detail: str


class Failure(CheckResult):
    next_step: str


class SentinelReport(BaseModel):
    status: Verdict
    generated_at: datetime
    base_url: str
    backend_url: str
    checks: list[CheckResult] = Field(default_factory=list)
    failures: list[Failure] = Field(default_factory=list)

    def first_failure(self) -> Failure | None:
        return self.failures[0] if self.failures else None
