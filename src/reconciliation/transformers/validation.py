"""Field rule sets for transformed candidate records.

Synchronous, no I/O. Every rule on every record is evaluated; issues are
collected, never short-circuited, so the reviewer sees all problems at once.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from src.schemas.records import ValidationIssue

# Extra per-record check: returns (field, message) pairs
RecordCheck = Callable[[Any], list[tuple[str, str]]]


@dataclass(frozen=True)
class FieldRule:
    """Constraints on one field of a candidate record."""

    field: str
    required: bool = False
    non_empty: bool = False
    positive: bool = False


def check_field(value: Any, rule: FieldRule) -> list[str]:
    """Messages for every constraint `value` breaks."""
    messages: list[str] = []
    if value is None:
        if rule.required:
            messages.append("is required")
        return messages
    if rule.non_empty and isinstance(value, str) and not value.strip():
        messages.append("must not be empty")
    if rule.positive:
        if not isinstance(value, (int, float, Decimal)) or isinstance(value, bool):
            messages.append("must be a number")
        elif value <= 0:
            messages.append("must be greater than zero")
    return messages


def validate_records(
    table: str,
    records: Sequence[BaseModel],
    rules: Sequence[FieldRule],
    checks: Sequence[RecordCheck] = (),
) -> list[ValidationIssue]:
    """Apply the rule set and extra checks to every record.

    Args:
        table: Destination table name, used in issue messages.
        records: Candidate records from a transformer.
        rules: Field rules for this destination.
        checks: Additional record-level checks.

    Returns:
        Every issue found, in record order. Empty when all records pass.
    """
    issues: list[ValidationIssue] = []
    for index, record in enumerate(records):
        for rule in rules:
            for message in check_field(getattr(record, rule.field, None), rule):
                issues.append(ValidationIssue(table=table, record_index=index, field=rule.field, message=message))
        for check in checks:
            for field_name, message in check(record):
                issues.append(ValidationIssue(table=table, record_index=index, field=field_name, message=message))
    return issues
