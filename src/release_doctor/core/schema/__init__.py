"""Schema drift: declared schema vs. what each database reports."""

from __future__ import annotations

from .differ import compare_schemas
from .discovery import discover_databases, extract_database_url, find_schema_path
from .introspect import CommandIntrospector, Introspector
from .models import DriftFinding, DriftResult, SchemaDescription, SchemaDriftReport
from .parser import parse_schema_file, parse_schema_text
from .service import run_schema_drift

__all__ = [
    "CommandIntrospector",
    "DriftFinding",
    "DriftResult",
    "Introspector",
    "SchemaDescription",
    "SchemaDriftReport",
    "compare_schemas",
    "discover_databases",
    "extract_database_url",
    "find_schema_path",
    "parse_schema_file",
    "parse_schema_text",
    "run_schema_drift",
]
