"""Declared-vs-reflected schema comparison."""

from __future__ import annotations

from ..models import Severity
from .models import (
    DriftFinding,
    DriftResult,
    DriftSummary,
    SchemaDescription,
    SchemaEnum,
    SchemaField,
)


def format_field_type(f: SchemaField) -> str:
    return f"{f.type}{'[]' if f.is_list else ''}{'?' if f.is_optional else ''}"


def field_types_match(declared: SchemaField, reflected: SchemaField) -> bool:
    return (
        declared.type == reflected.type
        and declared.is_list == reflected.is_list
        and declared.is_optional == reflected.is_optional
    )


def summarize(findings: list[DriftFinding]) -> DriftSummary:
    summary = DriftSummary(total=len(findings))
    for finding in findings:
        if finding.severity == Severity.HIGH:
            summary.high += 1
        elif finding.severity == Severity.MED:
            summary.med += 1
        else:
            summary.low += 1
    return summary


def _compare_enums(
    declared: dict[str, SchemaEnum],
    reflected: dict[str, SchemaEnum],
    findings: list[DriftFinding],
) -> None:
    for name, enum in declared.items():
        observed = reflected.get(name)
        if observed is None:
            findings.append(
                DriftFinding(
                    severity=Severity.MED,
                    kind="enum-mismatch",
                    message=f"Enum mismatch: {name} missing in DB schema",
                )
            )
            continue

        missing = [v for v in enum.values if v not in observed.values]
        extra = [v for v in observed.values if v not in enum.values]
        if not missing and not extra:
            continue
        parts: list[str] = []
        if missing:
            parts.append(f"missing values: {', '.join(missing)}")
        if extra:
            parts.append(f"extra values: {', '.join(extra)}")
        findings.append(
            DriftFinding(
                severity=Severity.MED,
                kind="enum-mismatch",
                message=f"Enum mismatch: {name} ({'; '.join(parts)})",
            )
        )


def compare_schemas(declared: SchemaDescription, reflected: SchemaDescription) -> DriftResult:
    """Report everything ``reflected`` lacks or disagrees with in ``declared``.

    Missing tables and columns are HIGH, type and enum mismatches MED, columns
    only the database has LOW. Ignored models and fields are skipped.
    """
    findings: list[DriftFinding] = []

    for model_name, model in declared.models.items():
        if model.ignored:
            continue

        observed = reflected.models.get(model_name)
        if observed is None:
            findings.append(
                DriftFinding(
                    severity=Severity.HIGH,
                    kind="missing-table",
                    model=model_name,
                    message=f"Missing table: {model_name}",
                )
            )
            continue

        for f in model.ordered_fields():
            if f.ignored:
                continue
            observed_field = observed.fields.get(f.name)
            if observed_field is None:
                findings.append(
                    DriftFinding(
                        severity=Severity.HIGH,
                        kind="missing-column",
                        model=model_name,
                        field=f.name,
                        message=f"Missing column: {model_name}.{f.name}",
                    )
                )
                continue
            if not field_types_match(f, observed_field):
                findings.append(
                    DriftFinding(
                        severity=Severity.MED,
                        kind="type-mismatch",
                        model=model_name,
                        field=f.name,
                        message=(
                            f"Type mismatch: {model_name}.{f.name} "
                            f"(Declared: {format_field_type(f)}, "
                            f"DB: {format_field_type(observed_field)})"
                        ),
                    )
                )

        for name in observed.field_order:
            if name not in model.fields:
                findings.append(
                    DriftFinding(
                        severity=Severity.LOW,
                        kind="extra-column",
                        model=model_name,
                        field=name,
                        message=f"Extra DB column: {model_name}.{name}",
                    )
                )

    _compare_enums(declared.enums, reflected.enums, findings)
    return DriftResult(findings=findings, summary=summarize(findings))
