"""Deduplication gate: drop candidates whose natural key already exists.

`filter_duplicates` is pure: it also drops repeats inside the batch and
keeps candidates without a key (the field rules reject those earlier).
`fetch_existing_keys` is the only query, always scoped to the tenant.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.reconciliation.transformers.base import Transformer

logger = logging.getLogger(__name__)


@dataclass
class DedupResult:
    kept: list[Any] = field(default_factory=list)
    filtered: list[Any] = field(default_factory=list)

    @property
    def filtered_count(self) -> int:
        return len(self.filtered)


def filter_duplicates(
    records: Sequence[Any],
    existing_keys: Iterable[str],
    key_fn: Callable[[Any], str | None],
) -> DedupResult:
    """Split candidates into kept and filtered, preserving order."""
    seen = set(existing_keys)
    result = DedupResult()
    for record in records:
        key = key_fn(record)
        if key is not None and key in seen:
            result.filtered.append(record)
            continue
        if key is not None:
            seen.add(key)
        result.kept.append(record)
    return result


async def fetch_existing_keys(
    db: AsyncSession,
    transformer: Transformer,
    company_id: uuid.UUID,
    keys: Iterable[str],
) -> set[str]:
    """Natural keys among `keys` that the tenant already has in the destination."""
    wanted = sorted({key for key in keys if key})
    if not wanted:
        return set()
    model = transformer.model
    column = getattr(model, transformer.key_column)
    result = await db.execute(
        select(column).where(model.company_id == company_id, column.in_(wanted))
    )
    existing = set(result.scalars().all())
    logger.debug("Found %d existing %s keys of %d", len(existing), transformer.table.value, len(wanted))
    return existing
