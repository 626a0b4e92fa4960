from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from release_doctor.core.errors import IntrospectionError
from release_doctor.core.schema.models import DiscoveredDatabase, SchemaDescription
from release_doctor.core.schema.parser import parse_schema_text

DECLARED_SCHEMA = """
generator client {
  provider = "prisma-client-js"
}

datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}

model User {
  id    String @id @default(uuid())
  email String @unique
}
"""


@pytest.fixture
def write_lines() -> Callable[[Path, list[str]], Path]:
    def _write(path: Path, lines: list[str]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_app_log(write_lines: Callable[[Path, list[str]], Path]) -> Callable[[Path], Path]:
    """Three occurrences of one error at different times plus one validation error."""

    def _write(path: Path) -> Path:
        return write_lines(
            path,
            [
                "2025-12-30T08:00:00Z INFO service started",
                "2025-12-30T08:01:00Z ERROR NullPointerException: user 41 not found",
                "    at UserService.find (src/users/user.service.ts:10:5)",
                "2025-12-30T08:02:00Z ERROR NullPointerException: user 9123 not found",
                "    at UserService.find (src/users/user.service.ts:10:5)",
                "2025-12-30T08:03:00Z ERROR ValidationError: field required",
                "2025-12-30T08:04:00Z ERROR NullPointerException: user 7 not found",
                "    at UserService.find (src/users/user.service.ts:10:5)",
            ],
        )

    return _write


@pytest.fixture
def repo_with_schema(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "prisma").mkdir(parents=True)
    (root / "prisma" / "schema.prisma").write_text(DECLARED_SCHEMA, encoding="utf-8")
    return root


class FakeIntrospector:
    """In-memory introspector returning canned schemas per environment name."""

    def __init__(
        self,
        schemas: dict[str, SchemaDescription] | None = None,
        failures: dict[str, str] | None = None,
    ) -> None:
        self.schemas = schemas or {}
        self.failures = failures or {}
        self.calls: list[str] = []

    async def introspect(self, env: DiscoveredDatabase) -> SchemaDescription:
        self.calls.append(env.name)
        if env.name in self.failures:
            raise IntrospectionError(env.name, self.failures[env.name])
        return self.schemas[env.name]


@pytest.fixture
def fake_introspector() -> Callable[..., FakeIntrospector]:
    return FakeIntrospector


@pytest.fixture
def schema_from_text() -> Callable[[str], SchemaDescription]:
    return parse_schema_text
