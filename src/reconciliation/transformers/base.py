"""Transformer descriptor shared by every destination."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.models.base import Base
from src.models.enums import DestinationTable
from src.reconciliation.transformers.validation import FieldRule, RecordCheck

# (field bag, company_id, source preview id) -> candidate records
TransformFn = Callable[[dict[str, Any], uuid.UUID, uuid.UUID | None], list[Any]]


@dataclass(frozen=True)
class Transformer:
    """Everything the approval path needs to commit one destination.

    `key_column` and `natural_key` define the deduplication key; `to_model`
    builds the ORM row from a validated candidate.
    """

    table: DestinationTable
    transform: TransformFn
    rules: Sequence[FieldRule]
    model: type[Base]
    key_column: str
    natural_key: Callable[[Any], str | None]
    to_model: Callable[[Any], Base]
    checks: Sequence[RecordCheck] = field(default_factory=tuple)


# Original position of a list row, stamped before reviewer exclusions remove rows
ROW_POSITION_KEY = "_row"


def tag_row_positions(fields: dict[str, Any]) -> dict[str, Any]:
    """Copy of `fields` where every dict row of a list field carries its position."""
    tagged: dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, list):
            tagged[name] = [
                {ROW_POSITION_KEY: position, **row} if isinstance(row, dict) else row
                for position, row in enumerate(value)
            ]
        else:
            tagged[name] = value
    return tagged
