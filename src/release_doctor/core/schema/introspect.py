"""Database introspection.

The reflector is an external tool: it rewrites a copy of the declared schema
file from the live database, and the copy is parsed with the same parser as
the declared schema.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import aiofiles

from ..errors import IntrospectionError
from ..masking import scrub
from .models import DiscoveredDatabase, SchemaDescription
from .parser import parse_schema_file

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("npx", "prisma", "db", "pull", "--schema")
STDERR_TAIL_CHARS = 2000


class Introspector(Protocol):
    async def introspect(self, env: DiscoveredDatabase) -> SchemaDescription:
        """Return the schema observed in ``env``; raise ``IntrospectionError`` on failure."""
        ...


async def _copy_file(src: Path, dst: Path) -> None:
    async with aiofiles.open(src, "rb") as fin:
        data = await fin.read()
    async with aiofiles.open(dst, "wb") as fout:
        await fout.write(data)


class CommandIntrospector:
    """Runs ``command + [<schema copy>]`` with the connection string in the environment."""

    def __init__(
        self,
        *,
        schema_path: str | Path,
        tmp_dir: str | Path,
        cwd: str | Path | None = None,
        command: Sequence[str] = DEFAULT_COMMAND,
        url_env_var: str = "DATABASE_URL",
        timeout_s: float = 120.0,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        if not command:
            raise ValueError("command must not be empty")
        self.schema_path = Path(schema_path)
        self.tmp_dir = Path(tmp_dir)
        self.cwd = Path(cwd) if cwd is not None else None
        self.command = tuple(command)
        self.url_env_var = url_env_var
        self.timeout_s = timeout_s

    def _fail(self, env: DiscoveredDatabase, message: str) -> IntrospectionError:
        return IntrospectionError(env.name, scrub(message, env.url, env.masked_identity))

    async def introspect(self, env: DiscoveredDatabase) -> SchemaDescription:
        copy_path = self.tmp_dir / f"{env.name}-schema.prisma"
        try:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
            await _copy_file(self.schema_path, copy_path)
        except OSError as exc:
            raise self._fail(env, f"cannot prepare schema copy: {exc}") from exc

        argv = [*self.command, str(copy_path)]
        child_env = {**os.environ, self.url_env_var: env.url}
        logger.info("Introspecting %s (%s)", env.name, env.masked_identity)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.cwd) if self.cwd else None,
                env=child_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise self._fail(env, f"introspection tool not found: {argv[0]}") from exc
        except OSError as exc:
            raise self._fail(env, f"cannot start introspection tool: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except TimeoutError as exc:
            raise self._fail(env, f"introspection timed out after {self.timeout_s:g}s") from exc
        finally:
            # Timeout or cancellation: never leave the tool running.
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[-STDERR_TAIL_CHARS:]
            message = f"introspection failed with exit code {proc.returncode}"
            if detail:
                message = f"{message}. {detail}"
            raise self._fail(env, message)

        try:
            return await parse_schema_file(copy_path)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise self._fail(env, f"cannot read introspected schema: {exc}") from exc
