"""Waste log transformer: monthly waste breakdowns -> WasteLogRecord rows.

Accepted field-bag shapes:
    residuos_por_mes:  {"JANEIRO": [{"tipo_residuo": ..., "quantidade": ...}], ...}
    waste_entries:     [{"month": "MAR", "waste_type": ..., "quantity": ...}, ...]
    tipos_residuos_quantidades_kg: {"Papelão": 120, ...}  (period from data_start)

Each row becomes one collection dated on the default collection day of its
month. Rows without an explicit manifest number get a generated one,
MTR-YYYYMM-XXXXXX, unique within the batch. The suffix is derived from the
source preview and the row's original position, so approving the same
preview twice yields the same numbers (whatever rows were excluded in
between) and the deduplication gate filters the repeat.
"""

from __future__ import annotations

import hashlib
import secrets
import string
import uuid
from datetime import date
from typing import Any

from src.config import settings
from src.models.enums import DestinationTable, RecordStatus, WasteClass
from src.models.waste_log import WasteLog
from src.reconciliation.transformers.base import ROW_POSITION_KEY, Transformer
from src.reconciliation.transformers.normalize import (
    clean_text,
    fold_text,
    month_number,
    parse_date,
    parse_decimal,
    parse_int,
)
from src.reconciliation.transformers.validation import FieldRule
from src.schemas.records import WasteLogRecord

DEFAULT_UNIT = "KG"
_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase
_SUFFIX_LENGTH = 6

# Ordered: the first matching class wins, so a contaminated recyclable is dangerous
WASTE_CLASS_RULES: tuple[tuple[WasteClass, tuple[str, ...]], ...] = (
    (
        WasteClass.I,
        ("PERIGOSO", "OLEO", "CONTAMINADO", "QUIMICO", "TOXICO", "INFLAMAVEL", "SOLVENTE", "BATERIA", "LAMPADA"),
    ),
    (
        WasteClass.II_A,
        ("PAPEL", "PLASTICO", "METAL", "SUCATA", "VIDRO", "ALUMINIO", "PAPELAO"),
    ),
)

RULES: tuple[FieldRule, ...] = (
    FieldRule("mtr_number", required=True, non_empty=True),
    FieldRule("waste_description", required=True, non_empty=True),
    FieldRule("collection_date", required=True),
    FieldRule("quantity", required=True, positive=True),
    FieldRule("unit", required=True, non_empty=True),
)


def classify_waste(description: str | None) -> WasteClass:
    """Hazard class from keywords in the description (accents and case ignored)."""
    folded = fold_text(description)
    for waste_class, keywords in WASTE_CLASS_RULES:
        if any(keyword in folded for keyword in keywords):
            return waste_class
    return WasteClass.II_B


def generate_mtr_number(
    year: int,
    month: int | None,
    source_ref: uuid.UUID | None,
    row_ref: str,
    taken: set[str],
) -> str:
    """MTR-YYYYMM-XXXXXX, not in `taken`.

    Deterministic when `source_ref` is given: the same preview and row
    reference always produce the same number.
    """
    prefix = f"MTR-{year:04d}{(month or 0):02d}-"
    salt = 0
    while True:
        if source_ref is None:
            suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
        else:
            suffix = _hashed_suffix(f"{source_ref}:{row_ref}:{salt}")
        candidate = prefix + suffix
        if candidate not in taken:
            return candidate
        salt += 1


def _hashed_suffix(seed: str) -> str:
    number = int(hashlib.sha256(seed.encode()).hexdigest(), 16)
    chars = []
    for _ in range(_SUFFIX_LENGTH):
        number, remainder = divmod(number, len(_SUFFIX_ALPHABET))
        chars.append(_SUFFIX_ALPHABET[remainder])
    return "".join(chars)


def _rows(fields: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten every supported shape into rows with English keys."""
    rows: list[dict[str, Any]] = []

    per_month = fields.get("residuos_por_mes")
    if isinstance(per_month, dict):
        for month, items in per_month.items():
            if not isinstance(items, list):
                continue
            for position, item in enumerate(items):
                if not isinstance(item, dict):
                    continue
                rows.append({
                    "ref": f"residuos_por_mes:{month}:{position}",
                    "month": month,
                    "year": item.get("ano"),
                    "waste_type": item.get("tipo_residuo"),
                    "quantity": item.get("quantidade"),
                    "unit": item.get("unidade_medida"),
                    "destination": item.get("receptor") or item.get("destinacao"),
                    "cost": item.get("pago") or item.get("valor_receber"),
                    "mtr_number": item.get("mtr") or item.get("mtr_number"),
                })

    entries = fields.get("waste_entries")
    if isinstance(entries, list):
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            rows.append({
                "ref": f"waste_entries:{entry.get(ROW_POSITION_KEY, position)}",
                "month": entry.get("month"),
                "year": entry.get("year"),
                "waste_type": entry.get("waste_type"),
                "quantity": entry.get("quantity"),
                "unit": entry.get("unit"),
                "destination": entry.get("receiver") or entry.get("destination"),
                "cost": entry.get("cost"),
                "mtr_number": entry.get("mtr_number"),
            })

    totals = fields.get("tipos_residuos_quantidades_kg")
    if isinstance(totals, dict):
        period_start = parse_date(fields.get("data_start"))
        for waste_type, quantity in totals.items():
            rows.append({
                "ref": f"tipos_residuos_quantidades_kg:{waste_type}",
                "month": period_start.month if period_start else None,
                "year": None,
                "waste_type": waste_type,
                "quantity": quantity,
                "unit": DEFAULT_UNIT,
                "destination": None,
                "cost": None,
                "mtr_number": None,
            })

    return rows


def _collection_date(year: int, month: int | None, day: int) -> date | None:
    """None when the parts do not form a real date ("2024/2025" read as a year, day 31 in April)."""
    if not month:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _default_year(fields: dict[str, Any]) -> int:
    period_start = parse_date(fields.get("data_start"))
    if period_start is not None:
        return period_start.year
    explicit = parse_int(fields.get("year") or fields.get("ano"))
    return explicit or date.today().year


def transform(
    fields: dict[str, Any],
    company_id: uuid.UUID,
    source_preview_id: uuid.UUID | None = None,
) -> list[WasteLogRecord]:
    """Build one WasteLogRecord per waste row in the field bag.

    Missing or unparseable values stay None; the field rules report them.
    """
    default_year = _default_year(fields)
    day = settings.pipeline.default_collection_day
    taken: set[str] = set()
    records: list[WasteLogRecord] = []

    for row in _rows(fields):
        month = month_number(row["month"])
        year = parse_int(row["year"]) or default_year
        collection_date = _collection_date(year, month, day)
        description = clean_text(row["waste_type"])
        unit = clean_text(row["unit"])

        mtr = clean_text(row["mtr_number"])
        if mtr is None:
            mtr = generate_mtr_number(year, month, source_preview_id, row["ref"], taken)
        taken.add(mtr)

        records.append(WasteLogRecord(
            company_id=company_id,
            mtr_number=mtr,
            waste_description=description,
            waste_class=classify_waste(description),
            collection_date=collection_date,
            quantity=parse_decimal(row["quantity"]),
            unit=unit.upper() if unit else DEFAULT_UNIT,
            destination_name=clean_text(row["destination"]),
            cost=parse_decimal(row["cost"]),
            status=RecordStatus.ACTIVE,
            source_preview_id=source_preview_id,
        ))

    return records


def natural_key(record: WasteLogRecord) -> str | None:
    return record.mtr_number


def to_model(record: WasteLogRecord) -> WasteLog:
    return WasteLog(
        company_id=record.company_id,
        mtr_number=record.mtr_number,
        waste_description=record.waste_description,
        waste_class=record.waste_class.value,
        collection_date=record.collection_date,
        quantity=record.quantity,
        unit=record.unit,
        destination_name=record.destination_name,
        cost=record.cost,
        status=record.status.value,
        source_preview_id=record.source_preview_id,
    )


TRANSFORMER = Transformer(
    table=DestinationTable.WASTE_LOGS,
    transform=transform,
    rules=RULES,
    model=WasteLog,
    key_column="mtr_number",
    natural_key=natural_key,
    to_model=to_model,
)
