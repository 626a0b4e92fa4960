"""Locate the declared schema and the environments to compare it against."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles

from ..errors import StopError
from ..masking import mask_database_url
from .models import DiscoveredDatabase, DiscoveryResult

if TYPE_CHECKING:
    from ...config import EnvFileSpec

logger = logging.getLogger(__name__)

SCHEMA_FILE_NAME = "schema.prisma"
SCHEMA_DIR_NAME = "prisma"
IGNORED_DIRS = frozenset({"node_modules", ".git", ".next", "dist", "build", "reports"})


def find_schema_path(repo_root: str | Path) -> Path:
    """Return ``prisma/schema.prisma`` under ``repo_root``, searching breadth-first.

    Raises
    ------
    StopError
        When no schema file exists.
    """
    root = Path(repo_root)
    direct = root / SCHEMA_DIR_NAME / SCHEMA_FILE_NAME
    if direct.is_file():
        return direct

    queue: deque[Path] = deque([root])
    while queue:
        current = queue.popleft()
        try:
            children = sorted(current.iterdir())
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", current, exc)
            continue
        for child in children:
            if child.is_dir():
                if child.name not in IGNORED_DIRS:
                    queue.append(child)
            elif child.name == SCHEMA_FILE_NAME and child.parent.name == SCHEMA_DIR_NAME:
                return child

    raise StopError(f"Schema not found. Expected {SCHEMA_DIR_NAME}/{SCHEMA_FILE_NAME} under {root}")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def extract_database_url(content: str, key: str = "DATABASE_URL") -> str | None:
    """Return the value of ``key`` from dotenv-style ``content``."""
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        name, sep, value = line.partition("=")
        if not sep or name.strip() != key:
            continue
        value = value.strip()
        hash_idx = value.find(" #")
        if hash_idx >= 0:
            value = value[:hash_idx].rstrip()
        value = _unquote(value)
        return value or None
    return None


async def discover_databases(
    repo_root: str | Path,
    env_files: Sequence[EnvFileSpec],
    *,
    url_key: str = "DATABASE_URL",
) -> DiscoveryResult:
    """Read each env file present under ``repo_root``.

    A present file lacking ``url_key`` lands in ``missing``; absent files are
    silently skipped.
    """
    root = Path(repo_root)
    result = DiscoveryResult()

    for spec in env_files:
        path = root / spec.file
        if not path.is_file():
            continue
        async with aiofiles.open(path, encoding="utf-8", errors="replace") as f:
            content = await f.read()
        url = extract_database_url(content, url_key)
        if url is None:
            result.missing.append(spec.file)
            continue
        db = DiscoveredDatabase(
            name=spec.name,
            env_file=str(path),
            url=url,
            masked_identity=mask_database_url(url),
        )
        logger.info("Discovered environment %s (%s)", db.name, db.masked_identity)
        result.databases.append(db)

    return result
