"""Reconciliation engine: compare staged values with the persisted entity.

Per field classification:
    new        absent from the current record, present in the extraction
    modified   present in both, values differ
    conflict   differ AND need human confirmation (low confidence or sensitive field)
    unchanged  values equal

The resulting ComparisonSet is what the reviewer works on: accept all,
accept only non-conflicting fields, or edit values before approval.
Rejection goes through the approval service because it needs a reason and
an audit entry.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.decoders.cnpj import cnpj_digits
from src.extraction.staging import bag_field, decode_value
from src.models.enums import ChangeKind, DestinationTable, RecordStatus
from src.models.license import License
from src.models.staging_item import StagingItem
from src.models.supplier import Supplier
from src.reconciliation.transformers import supplier as supplier_transformer
from src.reconciliation.transformers.normalize import clean_text

# Field-bag name -> destination column, per table with a comparable entity
FIELD_COLUMNS: dict[DestinationTable, dict[str, str]] = {
    DestinationTable.SUPPLIERS: {
        "razao_social": "name",
        "cnpj": "cnpj",
        "contato": "contact_person",
        "email": "email",
        "telefone": "phone",
        "address": "address",
    },
    DestinationTable.LICENSES: {
        "license_number": "license_number",
        "issuing_agency": "issuing_agency",
        "issue_date": "issue_date",
        "expiration_date": "expiration_date",
        "company_name": "company_name",
        "cnpj": "cnpj",
        "address": "address",
        "activity_description": "activity_description",
        "company_size": "company_size",
    },
}

_CONDITION_COLUMNS = ("code", "section_title", "text", "category", "deadline_days", "law_refs")

# Per-field comparison normalizers
_FIELD_NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "cnpj": lambda v: cnpj_digits(str(v)),
}


@dataclass
class FieldComparison:
    field_name: str
    extracted_value: Any
    current_value: Any
    confidence: float
    change: ChangeKind
    source_snippet: str | None = None
    row_index: int | None = None
    accepted: bool = True
    edited: bool = False

    @property
    def key(self) -> str:
        if self.row_index is None:
            return self.field_name
        return f"{self.field_name}[{self.row_index}]"


@dataclass
class ComparisonSet:
    """Editable per-field comparison of one extraction against one entity."""

    target_table: str
    fields: list[FieldComparison] = field(default_factory=list)
    has_current_record: bool = False

    def accept_all(self) -> None:
        for comparison in self.fields:
            comparison.accepted = True

    def accept_non_conflicting(self) -> None:
        for comparison in self.fields:
            comparison.accepted = comparison.change != ChangeKind.CONFLICT

    def edit(self, field_name: str, value: Any, row_index: int | None = None) -> None:
        """Replace a value before approval. Editing implies accepting."""
        comparison = self.get(field_name, row_index)
        if comparison is None:
            raise KeyError(f"{field_name}[{row_index}]" if row_index is not None else field_name)
        if _comparable(field_name, value) != _comparable(field_name, comparison.extracted_value):
            comparison.extracted_value = value
            comparison.edited = True
        comparison.accepted = True

    def get(self, field_name: str, row_index: int | None = None) -> FieldComparison | None:
        for comparison in self.fields:
            if comparison.field_name == field_name and comparison.row_index == row_index:
                return comparison
        return None

    def final_fields(self) -> dict[str, Any]:
        """Field bag of accepted values (rows regrouped in order)."""
        bag: dict[str, Any] = {}
        rows: dict[str, list[FieldComparison]] = {}
        for comparison in self.fields:
            if not comparison.accepted:
                continue
            if comparison.row_index is None:
                bag[comparison.field_name] = comparison.extracted_value
            else:
                rows.setdefault(comparison.field_name, []).append(comparison)
        for name, entries in rows.items():
            bag[name] = [c.extracted_value for c in sorted(entries, key=lambda c: c.row_index or 0)]
        return bag

    def edited_data(self) -> dict[str, Any]:
        """Only the edited keys, shaped like the field bag (a list is sent whole)."""
        final = self.final_fields()
        return {
            c.field_name: final[c.field_name]
            for c in self.fields
            if c.edited and c.accepted and c.field_name in final
        }

    def excluded_fields(self) -> list[str]:
        return [c.key for c in self.fields if not c.accepted]

    def summary(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in ChangeKind}
        for comparison in self.fields:
            counts[comparison.change.value] += 1
        return counts


def reconcile(
    target_table: str,
    items: Iterable[StagingItem],
    current_record: dict[str, Any] | None,
    *,
    conflict_threshold: float,
    sensitive_fields: Collection[str],
) -> ComparisonSet:
    """Classify every staged field against the current record (if any).

    Args:
        target_table: Destination the comparison is made against.
        items: All staging items of one extraction job.
        current_record: Persisted entity as a field bag, or None.
        conflict_threshold: Changed values below this confidence are conflicts.
        sensitive_fields: Changed values of these fields are always conflicts.
    """
    current = current_record or {}
    comparisons: list[FieldComparison] = []

    for item in items:
        name = bag_field(item)
        extracted = decode_value(item)
        existing = _current_value(current, name, item.row_index)

        if existing is None:
            change = ChangeKind.NEW
        elif _equal(name, extracted, existing):
            change = ChangeKind.UNCHANGED
        elif item.confidence < conflict_threshold or name in sensitive_fields:
            change = ChangeKind.CONFLICT
        else:
            change = ChangeKind.MODIFIED

        comparisons.append(FieldComparison(
            field_name=name,
            row_index=item.row_index,
            extracted_value=extracted,
            current_value=existing,
            confidence=item.confidence,
            change=change,
            source_snippet=item.source_snippet,
        ))

    comparisons.sort(key=lambda c: (c.field_name, c.row_index if c.row_index is not None else -1))
    return ComparisonSet(
        target_table=target_table,
        fields=comparisons,
        has_current_record=current_record is not None,
    )


def _current_value(current: dict[str, Any], name: str, row_index: int | None) -> Any:
    value = current.get(name)
    if row_index is None:
        return value
    if isinstance(value, list) and 0 <= row_index < len(value):
        return value[row_index]
    return None


def _equal(name: str, extracted: Any, existing: Any) -> bool:
    if isinstance(extracted, dict) and isinstance(existing, dict):
        shared = (set(extracted) & set(existing)) - {"source_snippet"}
        return all(_comparable(k, extracted[k]) == _comparable(k, existing[k]) for k in shared)
    return _comparable(name, extracted) == _comparable(name, existing)


def _comparable(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _FIELD_NORMALIZERS:
        return _FIELD_NORMALIZERS[name](value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return Decimal(str(value)).normalize()
    if isinstance(value, str):
        text = value.strip()
        try:
            return Decimal(text).normalize()
        except InvalidOperation:
            return text.casefold()
    return value


# ── Current record lookup ────────────────────────────────────────────


async def find_current_record(
    db: AsyncSession,
    table: DestinationTable,
    company_id: uuid.UUID,
    fields: dict[str, Any],
) -> dict[str, Any] | None:
    """Load the tenant's persisted entity matching the field bag's natural key.

    Returns the entity as a field bag (extraction field names), or None.
    Waste logs have no single comparable entity: each row is its own record.
    """
    if table == DestinationTable.LICENSES:
        number = clean_text(fields.get("license_number"))
        if number is None:
            return None
        result = await db.execute(
            select(License)
            .options(selectinload(License.conditions))
            .where(License.company_id == company_id, License.license_number == number)
        )
        entity = result.scalar_one_or_none()
        if entity is None:
            return None
        record = _as_field_bag(entity, FIELD_COLUMNS[table])
        record["conditions"] = [
            {column: getattr(condition, column) for column in _CONDITION_COLUMNS}
            for condition in entity.conditions
        ]
        return record

    if table == DestinationTable.SUPPLIERS:
        # Rosters list many suppliers: only a single registration has one entity to compare
        if not (fields.get("nome") or fields.get("razao_social")):
            return None
        key = supplier_transformer.natural_key(supplier_transformer.transform(fields, company_id)[0])
        if key is None:
            return None
        result = await db.execute(
            select(Supplier).where(
                Supplier.company_id == company_id,
                Supplier.registration_key == key,
                Supplier.status == RecordStatus.ACTIVE.value,
            )
        )
        entity = result.scalar_one_or_none()
        return _as_field_bag(entity, FIELD_COLUMNS[table]) if entity is not None else None

    return None


def _as_field_bag(entity: Any, columns: dict[str, str]) -> dict[str, Any]:
    return {name: getattr(entity, column) for name, column in columns.items()}
