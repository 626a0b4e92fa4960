"""Run configuration.

Configuration is built once per run and passed into the conductor. Values come
from an optional TOML file, then ``DOCTOR_*`` environment variables override
individual settings.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from .core.time_window import normalize_ts, parse_iso_dt
from .core.triage.models import IngestOptions, LogSourceConfig

ENV_PREFIX = "DOCTOR_"


@dataclass(frozen=True, slots=True)
class EnvFileSpec:
    """Deployment environment name and the env file holding its connection string."""

    name: str
    file: str


DEFAULT_ENV_FILES: tuple[EnvFileSpec, ...] = (
    EnvFileSpec("default", ".env"),
    EnvFileSpec("training", ".env.training"),
    EnvFileSpec("prod", ".env.prod"),
    EnvFileSpec("demo", ".env.demo"),
)

# Searched when no [[triage.sources]] are configured.
DEFAULT_LOG_DISCOVERY: tuple[LogSourceConfig, ...] = (
    LogSourceConfig("app", ("logs",)),
    LogSourceConfig("backend", ("backend/logs", "backend/tmp")),
    LogSourceConfig("frontend", ("frontend/logs", "frontend/.next/server")),
    LogSourceConfig("pm2", ("~/.pm2/logs",)),
)


@dataclass(frozen=True, slots=True)
class TriageConfig:
    sources: tuple[LogSourceConfig, ...] = ()
    discovery: tuple[LogSourceConfig, ...] = DEFAULT_LOG_DISCOVERY
    repo_root: str = "."
    max_lines: int = 5000
    max_file_size_bytes: int = 512 * 1024 * 1024
    max_read_bytes: int = 8 * 1024 * 1024
    top_n: int = 5
    baseline_path: str = ".release-doctor/log-triage-baseline.json"
    # Opt-in: when False a NEW fingerprint keeps being reported on every run.
    update_baseline: bool = False
    since: datetime | None = None
    hours_lookback: int = 24

    def ingest_options(self, since: datetime | None) -> IngestOptions:
        return IngestOptions(
            max_lines=self.max_lines,
            since=since,
            max_file_size_bytes=self.max_file_size_bytes,
            max_read_bytes=self.max_read_bytes,
        )


@dataclass(frozen=True, slots=True)
class SchemaConfig:
    repo_root: str = "."
    schema_path: str | None = None  # discovered under repo_root when unset
    env_files: tuple[EnvFileSpec, ...] = DEFAULT_ENV_FILES
    url_key: str = "DATABASE_URL"
    tmp_dir: str = ".release-doctor/tmp"
    introspect_command: tuple[str, ...] = ("npx", "prisma", "db", "pull", "--schema")
    timeout_s: float = 120.0
    max_concurrency: int = 2


@dataclass(frozen=True, slots=True)
class SentinelConfig:
    base_url: str = "http://localhost:3000"
    backend_url: str = "http://127.0.0.1:3002"
    health_paths: tuple[str, ...] = ("/health", "/healthz", "/api/health", "/readyz")
    login_path: str = "/auth/login"
    read_path: str = "/api/customers"
    identifier: str | None = None
    secret: str | None = field(default=None, repr=False)
    identifier_field: str = "email"
    secret_field: str = "password"
    timeout_s: float = 10.0


@dataclass(frozen=True, slots=True)
class DoctorConfig:
    reports_dir: str = "reports"
    triage: TriageConfig = field(default_factory=TriageConfig)
    schema: SchemaConfig = field(default_factory=SchemaConfig)
    sentinel: SentinelConfig = field(default_factory=SentinelConfig)

    @property
    def aggregate_report_path(self) -> Path:
        return Path(self.reports_dir) / "diagnostics-report.json"


def _check_keys(cls: type, table: dict[str, Any], section: str) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(table) - allowed)
    if unknown:
        raise ValueError(f"Unknown key(s) in [{section}]: {', '.join(unknown)}")


def _tuples(table: dict[str, Any]) -> dict[str, Any]:
    return {k: tuple(v) if isinstance(v, list) else v for k, v in table.items()}


def _parse_since(value: Any) -> datetime | None:
    # TOML may hand back a native (possibly naive) datetime or a string.
    if value is None:
        return None
    if isinstance(value, datetime):
        return normalize_ts(value)
    return parse_iso_dt(str(value))


def _sources_from_tables(tables: Any) -> tuple[LogSourceConfig, ...]:
    return tuple(
        LogSourceConfig(label=str(s["label"]), paths=tuple(str(p) for p in s.get("paths", ())))
        for s in tables
    )


def _triage_from_table(table: dict[str, Any]) -> TriageConfig:
    table = dict(table)
    sources = _sources_from_tables(table.pop("sources", ()))
    discovery = table.pop("discovery", None)
    since = table.pop("since", None)
    _check_keys(TriageConfig, table, "triage")
    cfg = TriageConfig(
        sources=sources,
        since=_parse_since(since),
        **table,
    )
    if discovery is not None:
        cfg = replace(cfg, discovery=_sources_from_tables(discovery))
    return cfg


def _schema_from_table(table: dict[str, Any]) -> SchemaConfig:
    table = dict(table)
    env_files = table.pop("env_files", None)
    _check_keys(SchemaConfig, table, "schema")
    cfg = SchemaConfig(**_tuples(table))
    if env_files is not None:
        cfg = replace(
            cfg, env_files=tuple(EnvFileSpec(str(e["name"]), str(e["file"])) for e in env_files)
        )
    return cfg


def _sentinel_from_table(table: dict[str, Any]) -> SentinelConfig:
    _check_keys(SentinelConfig, table, "sentinel")
    return SentinelConfig(**_tuples(table))


def config_from_mapping(data: dict[str, Any]) -> DoctorConfig:
    """Build a config from a parsed TOML document."""
    data = dict(data)
    triage = _triage_from_table(data.pop("triage", {}))
    schema = _schema_from_table(data.pop("schema", {}))
    sentinel = _sentinel_from_table(data.pop("sentinel", {}))
    _check_keys(DoctorConfig, data, "root")
    return DoctorConfig(triage=triage, schema=schema, sentinel=sentinel, **data)


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    return value if value else None


def _env_int(name: str, *, minimum: int = 1) -> int | None:
    raw = _env(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}")
    return value


def _env_float(name: str) -> float | None:
    raw = _env(name)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number") from exc
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be > 0")
    return value


def _env_bool(name: str) -> bool | None:
    raw = _env(name)
    if raw is None:
        return None
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean")


def _overrides(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def resolve_config(cfg: DoctorConfig | None = None) -> DoctorConfig:
    """Return config with ``DOCTOR_*`` environment overrides applied."""
    if cfg is None:
        cfg = DoctorConfig()

    triage = replace(
        cfg.triage,
        **_overrides(
            baseline_path=_env("BASELINE_PATH"),
            update_baseline=_env_bool("UPDATE_BASELINE"),
            max_lines=_env_int("TRIAGE_MAX_LINES"),
            repo_root=_env("REPO_ROOT"),
        ),
    )
    schema = replace(
        cfg.schema,
        **_overrides(
            repo_root=_env("REPO_ROOT"),
            max_concurrency=_env_int("SCHEMA_MAX_CONCURRENCY"),
            timeout_s=_env_float("SCHEMA_TIMEOUT_S"),
        ),
    )
    sentinel = replace(
        cfg.sentinel,
        **_overrides(
            base_url=_env("BASE_URL"),
            backend_url=_env("BACKEND_URL"),
            identifier=_env("LOGIN_IDENTIFIER"),
            secret=_env("LOGIN_SECRET"),
            timeout_s=_env_float("HTTP_TIMEOUT_S"),
        ),
    )
    return replace(
        cfg,
        triage=triage,
        schema=schema,
        sentinel=sentinel,
        **_overrides(reports_dir=_env("REPORTS_DIR")),
    )


def load_config(path: str | Path | None = None) -> DoctorConfig:
    """Load a TOML config file (optional) and apply environment overrides.

    Without ``path``, the file named by ``DOCTOR_CONFIG`` is used when set.
    """
    if path is None:
        path = _env("CONFIG")
    if path is None:
        return resolve_config(DoctorConfig())
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Config file not found: {p}")
    with p.open("rb") as f:
        data = tomllib.load(f)
    return resolve_config(config_from_mapping(data))
