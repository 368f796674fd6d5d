"""Approval audit writer: the only code that creates ApprovalAuditEntry rows.

One entry per decision, written inside the same unit of work as the
destination records, so either both exist or neither does. Entries are
never updated or deleted (enforced by mapper events on the model).
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.approval_audit import ApprovalAuditEntry
from src.models.enums import ApprovalAction
from src.schemas.approval import Identity

logger = logging.getLogger(__name__)

# Reviewer key addressing one row of a list field: "conditions[2]"
ROW_KEY = re.compile(r"^(?P<field>[a-z_]+)\[(?P<index>\d+)\]$")


def field_diff(original: dict[str, Any], edited: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Before/after pairs for every edited key whose value actually changed.

    Values are compared by their JSON form, so 10 and 10.0 differ but key
    order inside nested objects does not.
    """
    if not edited:
        return []
    diff: list[dict[str, Any]] = []
    for name, new_value in edited.items():
        old_value = original.get(name)
        if _json(old_value) != _json(new_value):
            diff.append({"field": name, "old_value": old_value, "new_value": new_value})
    return diff


def exclusion_diff(fields: dict[str, Any], excluded: list[str]) -> list[dict[str, Any]]:
    """Removal entries for declined fields (`cnpj`) and rows (`conditions[2]`).

    Keys that name nothing in `fields` are skipped.
    """
    diff: list[dict[str, Any]] = []
    for key in excluded:
        match = ROW_KEY.match(key)
        if match:
            rows = fields.get(match["field"])
            index = int(match["index"])
            if not isinstance(rows, list) or index >= len(rows):
                continue
            old_value = rows[index]
        elif key in fields:
            old_value = fields[key]
        else:
            continue
        diff.append({"field": key, "old_value": old_value, "new_value": None, "removed": True})
    return diff


def _json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


async def record_decision(
    db: AsyncSession,
    *,
    identity: Identity,
    preview_id: uuid.UUID,
    file_id: uuid.UUID | None,
    action: ApprovalAction,
    original_data: dict[str, Any],
    edited_data: dict[str, Any] | None,
    diff: list[dict[str, Any]],
    excluded_fields: list[str] | None = None,
    confidence_scores: dict[str, float],
    target_table: str | None,
    records_written: int,
    duplicates_filtered: int = 0,
    notes: str | None = None,
    processing_time_seconds: float = 0.0,
) -> ApprovalAuditEntry:
    """Add one write-once audit entry to the session and flush it."""
    entry = ApprovalAuditEntry(
        company_id=identity.company_id,
        preview_id=preview_id,
        file_id=file_id,
        approved_by=identity.user_id,
        action=action.value,
        original_data=original_data,
        edited_data=edited_data,
        field_diff=diff,
        excluded_fields=list(excluded_fields or []),
        confidence_scores=confidence_scores,
        target_table=target_table,
        records_written=records_written,
        duplicates_filtered=duplicates_filtered,
        notes=notes,
        processing_time_seconds=round(processing_time_seconds, 3),
    )
    db.add(entry)
    await db.flush()
    logger.info(
        "Audit entry: preview=%s action=%s table=%s written=%d",
        preview_id,
        action.value,
        target_table,
        records_written,
    )
    return entry
