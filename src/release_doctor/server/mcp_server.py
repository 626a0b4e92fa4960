"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: the diagnostics stages, individually or as one conductor run
- Resources: the report artifacts written by the last run

Run locally (stdio):
    python -m release_doctor.server.mcp_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from release_doctor.resources.registry import register_resources
from release_doctor.tools.diagnostics import (
    check_endpoints_impl,
    run_diagnostics_impl,
    schema_drift_impl,
    triage_logs_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Log to stderr; stdout carries the stdio transport."""
    level_name = os.getenv("DOCTOR_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


mcp = FastMCP("release-doctor", json_response=True)

register_resources(mcp)


@mcp.tool()
async def run_diagnostics(
    config_path: str | None = None,
    reports_dir: str | None = None,
) -> dict[str, Any]:
    """Run sentinel, schema drift and log triage; return the GO/NO_GO verdict.

    Stages run in order and stop at the first NO_GO. The aggregate report is
    always written to ``<reports_dir>/diagnostics-report.json``.
    """
    return await run_diagnostics_impl(config_path=config_path, reports_dir=reports_dir)


@mcp.tool()
async def triage_logs(
    log_paths: Sequence[str] | None = None,
    label: str = "app",
    config_path: str | None = None,
    reports_dir: str | None = None,
    since: str | None = None,
    hours_lookback: int | None = None,
    top_n: int | None = None,
    update_baseline: bool | None = None,
) -> dict[str, Any]:
    """Fingerprint recent errors and flag the ones missing from the baseline.

    Parameters
    ----------
    log_paths:
        Files or directories to read; rotated siblings are included.
    since:
        ISO-8601 datetime. If timezone is omitted, UTC is assumed.
    update_baseline:
        When true, NEW fingerprints are absorbed into the baseline.
    """
    return await triage_logs_impl(
        log_paths=log_paths,
        label=label,
        config_path=config_path,
        reports_dir=reports_dir,
        since=since,
        hours_lookback=hours_lookback,
        top_n=top_n,
        update_baseline=update_baseline,
    )


@mcp.tool()
async def schema_drift(
    config_path: str | None = None,
    reports_dir: str | None = None,
    repo_root: str | None = None,
    schema_path: str | None = None,
) -> dict[str, Any]:
    """Compare the declared schema with every configured database environment."""
    return await schema_drift_impl(
        config_path=config_path,
        reports_dir=reports_dir,
        repo_root=repo_root,
        schema_path=schema_path,
    )


@mcp.tool()
async def check_endpoints(
    config_path: str | None = None,
    base_url: str | None = None,
    backend_url: str | None = None,
) -> dict[str, Any]:
    """Check reachability, health, login and an authenticated read."""
    return await check_endpoints_impl(
        config_path=config_path, base_url=base_url, backend_url=backend_url
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
