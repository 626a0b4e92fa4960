from __future__ import annotations

from pathlib import Path

import pytest

from release_doctor.config import DEFAULT_ENV_FILES
from release_doctor.core.errors import StopError
from release_doctor.core.masking import mask_database_url
from release_doctor.core.schema.discovery import (
    discover_databases,
    extract_database_url,
    find_schema_path,
)


def test_extract_database_url_handles_dotenv_syntax() -> None:
    content = "\n".join(
        [
            "# comment",
            "",
            "OTHER=1",
            'export DATABASE_URL="postgresql://u:p@db:5432/app" # primary',
        ]
    )
    assert extract_database_url(content) == "postgresql://u:p@db:5432/app"
    assert extract_database_url("DATABASE_URL=''") is None
    assert extract_database_url("NOPE=1") is None


def test_mask_database_url() -> None:
    assert mask_database_url("postgresql://u:p@db:5432/app") == "postgresql://***:***@***:***/***"
    assert mask_database_url("postgresql://u:p@db/app") == "postgresql://***:***@***/***"
    assert mask_database_url("not a url") == "<masked>"


def test_find_schema_path_direct_and_nested(tmp_path: Path) -> None:
    nested = tmp_path / "services" / "api" / "prisma"
    nested.mkdir(parents=True)
    (nested / "schema.prisma").write_text("", encoding="utf-8")
    ignored = tmp_path / "node_modules" / "pkg" / "prisma"
    ignored.mkdir(parents=True)
    (ignored / "schema.prisma").write_text("", encoding="utf-8")

    assert find_schema_path(tmp_path) == nested / "schema.prisma"

    direct = tmp_path / "prisma"
    direct.mkdir()
    (direct / "schema.prisma").write_text("", encoding="utf-8")
    assert find_schema_path(tmp_path) == direct / "schema.prisma"


def test_find_schema_path_missing(tmp_path: Path) -> None:
    with pytest.raises(StopError, match="Schema not found"):
        find_schema_path(tmp_path)


@pytest.mark.asyncio
async def test_discover_databases_reports_missing(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("DATABASE_URL=postgresql://u:p@db:5432/app\n", encoding="utf-8")
    (tmp_path / ".env.prod").write_text("PORT=3000\n", encoding="utf-8")

    result = await discover_databases(tmp_path, DEFAULT_ENV_FILES)

    assert [db.name for db in result.databases] == ["default"]
    assert result.databases[0].masked_identity == "postgresql://***:***@***:***/***"
    assert result.missing == [".env.prod"]


@pytest.mark.asyncio
async def test_discovered_url_never_serialized(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("DATABASE_URL=postgresql://u:secret@db/app\n", encoding="utf-8")

    result = await discover_databases(tmp_path, DEFAULT_ENV_FILES)

    assert "secret" not in result.model_dump_json()
    assert "secret" not in repr(result.databases[0])
