"""Parser for Prisma-style schema files.

Only ``model``, ``enum`` and ``type`` blocks are read. Generator and
datasource blocks are skipped.
"""

from __future__ import annotations

import re
from pathlib import Path

import aiofiles

from .models import SchemaDescription, SchemaEnum, SchemaField, SchemaModel

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_HEADER_RE = re.compile(r"\b(model|enum|type)\s+([A-Za-z_]\w*)\s*\{")
_IDENT_RE = re.compile(r"^[A-Za-z_]\w*$")


def strip_comments(text: str) -> str:
    return _LINE_COMMENT_RE.sub("", _BLOCK_COMMENT_RE.sub("", text))


def _find_block_end(text: str, open_idx: int) -> int:
    """Index of the brace closing the one at ``open_idx``; -1 if unbalanced.

    Braces inside string literals are ignored.
    """
    depth = 0
    in_string = False
    i = open_idx
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _parse_field(line: str) -> SchemaField | None:
    tokens = line.split()
    if len(tokens) < 2 or not _IDENT_RE.match(tokens[0]):
        return None
    raw_type = tokens[1]
    is_list = "[]" in raw_type
    base = raw_type.replace("[]", "")
    is_optional = base.endswith("?")
    base = base.rstrip("?")
    return SchemaField(
        name=tokens[0],
        type=base,
        raw_type=raw_type,
        is_list=is_list,
        is_optional=is_optional,
        ignored=any(t == "@ignore" or t.startswith("@ignore(") for t in tokens[2:]),
    )


def _parse_model(name: str, body: str) -> SchemaModel:
    model = SchemaModel(name=name)
    for raw in body.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("@@"):
            if line.startswith("@@ignore"):
                model.ignored = True
            continue
        if line.startswith("@"):
            continue
        parsed = _parse_field(line)
        if parsed is not None:
            model.add_field(parsed)
    return model


def _parse_enum(name: str, body: str) -> SchemaEnum:
    values: list[str] = []
    for raw in body.splitlines():
        line = raw.strip()
        if not line or line.startswith("@"):
            continue
        token = line.split()[0]
        if _IDENT_RE.match(token):
            values.append(token)
    return SchemaEnum(name=name, values=values)


def parse_schema_text(text: str) -> SchemaDescription:
    schema = SchemaDescription()
    cleaned = strip_comments(text)
    pos = 0
    while True:
        m = _HEADER_RE.search(cleaned, pos)
        if m is None:
            break
        open_idx = m.end() - 1
        close_idx = _find_block_end(cleaned, open_idx)
        if close_idx < 0:
            break
        kind, name = m.group(1), m.group(2)
        body = cleaned[open_idx + 1 : close_idx]
        if kind == "model":
            schema.models[name] = _parse_model(name, body)
        elif kind == "type":
            schema.types[name] = _parse_model(name, body)
        else:
            schema.enums[name] = _parse_enum(name, body)
        pos = close_idx + 1
    return schema


async def parse_schema_file(path: str | Path) -> SchemaDescription:
    async with aiofiles.open(path, encoding="utf-8") as f:
        text = await f.read()
    return parse_schema_text(text)
