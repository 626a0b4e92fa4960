"""Schema description and drift result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from ..models import Severity, Verdict

DriftKind = Literal[
    "missing-table",
    "missing-column",
    "type-mismatch",
    "enum-mismatch",
    "extra-column",
]


class SchemaField(BaseModel):
    name: str
    type: str
    raw_type: str
    is_list: bool = False
    is_optional: bool = False
    ignored: bool = False


class SchemaModel(BaseModel):
    """A table-like block. ``field_order`` keeps declaration order for reporting."""

    name: str
    fields: dict[str, SchemaField] = Field(default_factory=dict)
    field_order: list[str] = Field(default_factory=list)
    ignored: bool = False

    def add_field(self, f: SchemaField) -> None:
        if f.name not in self.fields:
            self.field_order.append(f.name)
        self.fields[f.name] = f

    def ordered_fields(self) -> list[SchemaField]:
        return [self.fields[name] for name in self.field_order]


class SchemaEnum(BaseModel):
    name: str
    values: list[str] = Field(default_factory=list)


class SchemaDescription(BaseModel):
    """Parsed schema; the declared file and each reflected database share this shape."""

    models: dict[str, SchemaModel] = Field(default_factory=dict)
    enums: dict[str, SchemaEnum] = Field(default_factory=dict)
    types: dict[str, SchemaModel] = Field(default_factory=dict)


class DriftFinding(BaseModel):
    severity: Severity
    kind: DriftKind
    model: str | None = None
    field: str | None = None
    message: str


class DriftSummary(BaseModel):
    high: int = 0
    med: int = 0
    low: int = 0
    total: int = 0


class DriftResult(BaseModel):
    findings: list[DriftFinding] = Field(default_factory=list)
    summary: DriftSummary = Field(default_factory=DriftSummary)

    def first_high(self) -> DriftFinding | None:
        for finding in self.findings:
            if finding.severity == Severity.HIGH:
                return finding
        return None


class DiscoveredDatabase(BaseModel):
    """A deployment environment and its connection string.

    ``url`` carries credentials and is excluded from every dump.
    """

    name: str
    env_file: str
    url: str = Field(exclude=True, repr=False)
    masked_identity: str


class DiscoveryResult(BaseModel):
    databases: list[DiscoveredDatabase] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class EnvironmentStatus(str, Enum):
    PASS = "PASS"
    DRIFT = "DRIFT"
    ERROR = "ERROR"


class EnvironmentResult(BaseModel):
    name: str
    env_file: str
    masked_identity: str
    status: EnvironmentStatus
    drift: DriftResult | None = None
    error: str | None = None


class EnvironmentCounts(BaseModel):
    scanned: int = 0
    passed: int = 0
    drifted: int = 0
    errored: int = 0


class SchemaDriftReport(BaseModel):
    status: Verdict
    generated_at: datetime
    schema_path: str
    environments: list[EnvironmentResult] = Field(default_factory=list)
    summary: EnvironmentCounts = Field(default_factory=EnvironmentCounts)
    missing_env_files: list[str] = Field(default_factory=list)
    report_path: str | None = None

    def first_problem(self) -> str | None:
        """First HIGH finding, else first environment error, as one line."""
        for env in self.environments:
            high = env.drift.first_high() if env.drift else None
            if high is not None:
                return f"{env.name}: {high.message}"
        for env in self.environments:
            if env.error:
                return env.error
        return None
