"""Report artifact writing (overwritten on every run)."""

from __future__ import annotations

from pathlib import Path

import aiofiles
from pydantic import BaseModel


async def write_text(path: str | Path, text: str) -> str:
    """Write ``text`` to ``path`` (creating parent dirs) and return the path."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(p, "w", encoding="utf-8") as f:
        await f.write(text)
    return str(p)


async def write_json(path: str | Path, model: BaseModel) -> str:
    return await write_text(path, model.model_dump_json(indent=2) + "\n")
