"""Tool implementations.

Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from release_doctor.config import DoctorConfig, load_config
from release_doctor.core.conductor import DiagnosticsConductor
from release_doctor.core.schema import run_schema_drift
from release_doctor.core.sentinel import run_sentinel
from release_doctor.core.time_window import parse_iso_dt
from release_doctor.core.triage import LogSourceConfig, run_triage
from release_doctor.resources.registry import set_reports_dir

DEFAULT_SOURCE_LABEL = "app"
HARD_TOP_N = 50


def _load(config_path: str | None, reports_dir: str | None) -> DoctorConfig:
    cfg = load_config(config_path)
    if reports_dir:
        cfg = replace(cfg, reports_dir=reports_dir)
    set_reports_dir(cfg.reports_dir)
    return cfg


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json")


async def run_diagnostics_impl(
    *,
    config_path: str | None = None,
    reports_dir: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `run_diagnostics` tool."""
    cfg = _load(config_path, reports_dir)
    report = await DiagnosticsConductor(cfg).run()
    return _dump(report)


async def triage_logs_impl(
    *,
    log_paths: Sequence[str] | None = None,
    label: str = DEFAULT_SOURCE_LABEL,
    config_path: str | None = None,
    reports_dir: str | None = None,
    since: str | None = None,
    hours_lookback: int | None = None,
    top_n: int | None = None,
    update_baseline: bool | None = None,
) -> dict[str, Any]:
    """Implementation for the `triage_logs` tool.

    Notes
    -----
    - ``log_paths`` replaces the configured sources with a single source named
      ``label``.
    - Window precedence: ``since`` > baseline ``last_run_at`` > ``hours_lookback``.
    """
    cfg = _load(config_path, reports_dir)
    triage = cfg.triage

    if log_paths:
        paths = tuple(p for p in (s.strip() for s in log_paths) if p)
        if not paths:
            raise ValueError("log_paths must contain at least one non-empty path")
        triage = replace(triage, sources=(LogSourceConfig(label=label, paths=paths),))

    if since:
        triage = replace(triage, since=parse_iso_dt(since))
    if hours_lookback is not None:
        if hours_lookback < 0:
            raise ValueError("hours_lookback must be >= 0")
        triage = replace(triage, hours_lookback=hours_lookback)
    if top_n is not None:
        if top_n <= 0:
            raise ValueError("top_n must be > 0")
        triage = replace(triage, top_n=min(top_n, HARD_TOP_N))
    if update_baseline is not None:
        triage = replace(triage, update_baseline=update_baseline)

    report = await run_triage(triage, reports_dir=cfg.reports_dir)
    return _dump(report)


async def schema_drift_impl(
    *,
    config_path: str | None = None,
    reports_dir: str | None = None,
    repo_root: str | None = None,
    schema_path: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `schema_drift` tool."""
    cfg = _load(config_path, reports_dir)
    schema = cfg.schema
    if repo_root:
        schema = replace(schema, repo_root=repo_root)
    if schema_path:
        schema = replace(schema, schema_path=schema_path)
    report = await run_schema_drift(schema, reports_dir=cfg.reports_dir)
    return _dump(report)


async def check_endpoints_impl(
    *,
    config_path: str | None = None,
    base_url: str | None = None,
    backend_url: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `check_endpoints` tool."""
    cfg = _load(config_path, None)
    sentinel = cfg.sentinel
    if base_url:
        sentinel = replace(sentinel, base_url=base_url)
    if backend_url:
        sentinel = replace(sentinel, backend_url=backend_url)
    report = await run_sentinel(sentinel)
    return _dump(report)
