"""Schema drift orchestration across every discovered environment."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import IntrospectionError, StopError
from ..masking import scrub
from ..models import Verdict
from ..reporting import write_text
from .differ import compare_schemas
from .discovery import discover_databases, find_schema_path
from .introspect import CommandIntrospector, Introspector
from .models import (
    DiscoveredDatabase,
    EnvironmentCounts,
    EnvironmentResult,
    EnvironmentStatus,
    SchemaDescription,
    SchemaDriftReport,
)
from .parser import parse_schema_file
from .report import REPORT_FILE_NAME, render_drift_markdown

if TYPE_CHECKING:
    from ...config import SchemaConfig

logger = logging.getLogger(__name__)


def _resolve_schema_path(config: SchemaConfig) -> Path:
    root = Path(config.repo_root)
    if config.schema_path is None:
        return find_schema_path(root)
    p = Path(config.schema_path).expanduser()
    if not p.is_absolute():
        p = root / p
    if not p.is_file():
        raise StopError(f"Declared schema not found: {p}")
    return p


def _count(environments: list[EnvironmentResult]) -> EnvironmentCounts:
    return EnvironmentCounts(
        scanned=len(environments),
        passed=sum(1 for e in environments if e.status == EnvironmentStatus.PASS),
        drifted=sum(1 for e in environments if e.status == EnvironmentStatus.DRIFT),
        errored=sum(1 for e in environments if e.status == EnvironmentStatus.ERROR),
    )


def _is_blocking(env: EnvironmentResult) -> bool:
    if env.status == EnvironmentStatus.ERROR:
        return True
    return env.drift is not None and env.drift.summary.high > 0


def _errored(db: DiscoveredDatabase, message: str) -> EnvironmentResult:
    return EnvironmentResult(
        name=db.name,
        env_file=db.env_file,
        masked_identity=db.masked_identity,
        status=EnvironmentStatus.ERROR,
        error=message,
    )


async def _check_environment(
    db: DiscoveredDatabase,
    declared: SchemaDescription,
    introspector: Introspector,
    semaphore: asyncio.Semaphore,
) -> EnvironmentResult:
    async with semaphore:
        try:
            reflected = await introspector.introspect(db)
        except IntrospectionError as exc:
            logger.warning("Introspection failed for %s: %s", db.name, exc)
            return _errored(db, str(exc))
        except Exception as exc:
            # One broken environment must not take the others down with it.
            logger.exception("Unexpected introspection failure for %s", db.masked_identity)
            message = scrub(f"{exc.__class__.__name__}: {exc}", db.url, db.masked_identity)
            return _errored(db, f"{db.name}: {message}")

    drift = compare_schemas(declared, reflected)
    return EnvironmentResult(
        name=db.name,
        env_file=db.env_file,
        masked_identity=db.masked_identity,
        status=EnvironmentStatus.DRIFT if drift.findings else EnvironmentStatus.PASS,
        drift=drift,
    )


async def run_schema_drift(
    config: SchemaConfig,
    *,
    reports_dir: str | Path,
    introspector: Introspector | None = None,
    now: datetime | None = None,
) -> SchemaDriftReport:
    """Compare the declared schema with every environment and write the report.

    Raises
    ------
    StopError
        When the schema is missing, an env file lacks its connection string,
        or no environment is found. Raised before any introspection starts.
    """
    if config.max_concurrency <= 0:
        raise ValueError("max_concurrency must be > 0")
    now = now or datetime.now(UTC)

    schema_path = _resolve_schema_path(config)
    try:
        declared = await parse_schema_file(schema_path)
    except (OSError, UnicodeDecodeError) as exc:
        raise StopError(f"Cannot read declared schema {schema_path}: {exc}") from exc

    discovery = await discover_databases(
        config.repo_root, config.env_files, url_key=config.url_key
    )
    if discovery.missing:
        raise StopError(f"{config.url_key} missing in: {', '.join(discovery.missing)}")
    if not discovery.databases:
        raise StopError("No database environments discovered")

    if introspector is None:
        introspector = CommandIntrospector(
            schema_path=schema_path,
            tmp_dir=config.tmp_dir,
            cwd=config.repo_root,
            command=config.introspect_command,
            url_env_var=config.url_key,
            timeout_s=config.timeout_s,
        )

    semaphore = asyncio.Semaphore(config.max_concurrency)
    environments = list(
        await asyncio.gather(
            *(
                _check_environment(db, declared, introspector, semaphore)
                for db in discovery.databases
            )
        )
    )

    report = SchemaDriftReport(
        status=Verdict.NO_GO if any(_is_blocking(e) for e in environments) else Verdict.GO,
        generated_at=now,
        schema_path=str(schema_path),
        environments=environments,
        summary=_count(environments),
        missing_env_files=discovery.missing,
    )
    path = Path(reports_dir) / REPORT_FILE_NAME
    report.report_path = await write_text(path, render_drift_markdown(report))
    return report
