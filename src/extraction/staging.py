"""Staging repository: candidate fields awaiting human review.

Pure builders turn a validated ExtractionPayload into StagingItem rows and
regroup rows into the preview field bag. Async helpers read and resolve the
items of one job. Review status moves one way only: pending to approved or
rejected.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import ReviewStatus
from src.models.staging_item import StagingItem
from src.schemas.extraction import REPEATING_FIELDS, SCALAR_FIELDS, ExtractionPayload

logger = logging.getLogger(__name__)

# Staging field name -> field bag key ("condition" -> "conditions")
_ROW_KEYS: dict[str, str] = {item: bag for bag, item in REPEATING_FIELDS.items()}

# Fields stored as JSON text rather than plain strings
_JSON_SCALARS = frozenset({"coordinates"})


# ── Builders ─────────────────────────────────────────────────────────


def build_staging_items(job_id: uuid.UUID, payload: ExtractionPayload) -> list[StagingItem]:
    """One item per present scalar field and one per element of every repeating list.

    Elements are never merged: three conditions always give three items, with
    `row_index` preserving document order. Items without their own confidence
    inherit the document-level confidence.
    """
    items: list[StagingItem] = []

    for field_name in SCALAR_FIELDS:
        value = getattr(payload, field_name)
        if value is None or value == "":
            continue
        evidence = payload.evidence_for(field_name)
        if field_name in _JSON_SCALARS:
            serialized = json.dumps(value.model_dump(exclude_none=True), ensure_ascii=False)
        else:
            serialized = str(value)
        items.append(StagingItem(
            extraction_job_id=job_id,
            row_index=None,
            field_name=field_name,
            extracted_value=serialized,
            source_snippet=evidence.source_snippet if evidence else None,
            confidence=_confidence_or_default(evidence.confidence if evidence else None, payload.confidence),
            review_status=ReviewStatus.PENDING.value,
        ))

    for bag_key, item_name in REPEATING_FIELDS.items():
        for row_index, entry in enumerate(getattr(payload, bag_key)):
            row = entry.model_dump(exclude={"confidence"}, exclude_none=True)
            items.append(StagingItem(
                extraction_job_id=job_id,
                row_index=row_index,
                field_name=item_name,
                extracted_value=json.dumps(row, ensure_ascii=False),
                source_snippet=entry.source_snippet,
                confidence=_confidence_or_default(entry.confidence, payload.confidence),
                review_status=ReviewStatus.PENDING.value,
            ))

    return items


def build_field_bag(items: Iterable[StagingItem]) -> dict[str, Any]:
    """Regroup staging items into the preview field bag.

    Scalars map to their value; repeating rows are collected under their list
    key (`conditions`, `waste_entries`, `suppliers`) ordered by row_index.
    """
    bag: dict[str, Any] = {}
    rows: dict[str, list[tuple[int, dict[str, Any]]]] = {}

    for item in items:
        if item.field_name in _ROW_KEYS:
            key = _ROW_KEYS[item.field_name]
            rows.setdefault(key, []).append((item.row_index or 0, decode_value(item)))
        else:
            bag[item.field_name] = decode_value(item)

    for key, indexed in rows.items():
        bag[key] = [row for _, row in sorted(indexed, key=lambda pair: pair[0])]

    return bag


def build_confidence_scores(items: Iterable[StagingItem]) -> dict[str, float]:
    """Per-field confidence keyed like the field bag (`conditions[2]` for rows)."""
    scores: dict[str, float] = {}
    for item in items:
        scores[item_key(item)] = item.confidence
    return scores


def bag_field(item: StagingItem) -> str:
    """Top-level field-bag key of an item (`conditions` for a condition row)."""
    return _ROW_KEYS.get(item.field_name, item.field_name)


def item_key(item: StagingItem) -> str:
    """Stable key of an item inside the field bag."""
    if item.field_name in _ROW_KEYS:
        return f"{bag_field(item)}[{item.row_index}]"
    return item.field_name


def decode_value(item: StagingItem) -> Any:
    """Return the item's value in field-bag form (rows and JSON scalars decoded)."""
    if item.extracted_value is None:
        return None
    if item.field_name in _ROW_KEYS or item.field_name in _JSON_SCALARS:
        return json.loads(item.extracted_value)
    return item.extracted_value


# ── Review status ────────────────────────────────────────────────────


def transition_review_status(item: StagingItem, target: ReviewStatus) -> bool:
    """Resolve a pending item. Returns False (and changes nothing) if already resolved."""
    if target == ReviewStatus.PENDING:
        return False
    if item.review_status != ReviewStatus.PENDING.value:
        return False
    item.review_status = target.value
    item.reviewed_at = datetime.now(timezone.utc)
    return True


def auto_approve_eligible(items: Iterable[StagingItem], threshold: float) -> list[StagingItem]:
    """Pending items whose confidence meets the acceptance threshold."""
    return [
        item for item in items
        if item.review_status == ReviewStatus.PENDING.value and item.confidence >= threshold
    ]


def _confidence_or_default(confidence: float | None, default: float) -> float:
    return default if confidence is None else confidence


# ── Persistence helpers ──────────────────────────────────────────────


async def get_job_items(db: AsyncSession, job_id: uuid.UUID) -> Sequence[StagingItem]:
    """All staging items of a job in document order."""
    result = await db.execute(
        select(StagingItem)
        .where(StagingItem.extraction_job_id == job_id)
        .order_by(StagingItem.field_name, StagingItem.row_index)
    )
    return result.scalars().all()


async def count_job_items(db: AsyncSession, job_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(StagingItem).where(StagingItem.extraction_job_id == job_id)
    )
    return int(result.scalar_one())


async def resolve_job_items(
    db: AsyncSession,
    job_id: uuid.UUID,
    target: ReviewStatus,
    *,
    excluded_fields: Iterable[str] = (),
) -> int:
    """Resolve every pending item of a job.

    Items whose field-bag key or top-level field appears in `excluded_fields`
    are rejected instead of taking `target`. Returns how many items changed.
    """
    excluded = set(excluded_fields)
    changed = 0
    for item in await get_job_items(db, job_id):
        key = item_key(item)
        status = ReviewStatus.REJECTED if key in excluded or bag_field(item) in excluded else target
        if transition_review_status(item, status):
            changed += 1
    logger.debug("Resolved %d staging items of job %s as %s", changed, job_id, target.value)
    return changed
