"""Supplier transformer: registration documents and supplier rosters -> SupplierRecord rows.

A single supplier comes from top-level fields (nome / razao_social, cnpj,
contato, ...); rosters come from the `fornecedores` or `suppliers` arrays.
Suppliers are keyed by CNPJ digits, or by folded name when no CNPJ is known.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

from src.decoders.cnpj import cnpj_digits, format_cnpj, validate_cnpj_checksum
from src.models.enums import DestinationTable, RecordStatus
from src.models.supplier import Supplier
from src.reconciliation.transformers.base import Transformer
from src.reconciliation.transformers.normalize import clean_text, fold_text
from src.reconciliation.transformers.validation import FieldRule
from src.schemas.records import SupplierRecord

DEFAULT_SUPPLIER_TYPE = "geral"
_WHITESPACE = re.compile(r"\s+")

RULES: tuple[FieldRule, ...] = (
    FieldRule("name", required=True, non_empty=True),
)


def _cnpj_check(record: SupplierRecord) -> list[tuple[str, str]]:
    if record.cnpj and not validate_cnpj_checksum(record.cnpj):
        return [("cnpj", f"invalid CNPJ check digits ({record.cnpj})")]
    return []


def _record(source: dict[str, Any], company_id: uuid.UUID, source_preview_id: uuid.UUID | None) -> SupplierRecord:
    cnpj = clean_text(source.get("cnpj"))
    return SupplierRecord(
        company_id=company_id,
        name=clean_text(source.get("nome") or source.get("razao_social") or source.get("name")),
        cnpj=format_cnpj(cnpj) if cnpj else None,
        contact_person=clean_text(source.get("contato") or source.get("contact_person")),
        email=clean_text(source.get("email")),
        phone=clean_text(source.get("telefone") or source.get("phone")),
        address=clean_text(source.get("endereco") or source.get("address")),
        supplier_type=clean_text(source.get("tipo") or source.get("supplier_type")) or DEFAULT_SUPPLIER_TYPE,
        status=RecordStatus.ACTIVE,
        source_preview_id=source_preview_id,
    )


def transform(
    fields: dict[str, Any],
    company_id: uuid.UUID,
    source_preview_id: uuid.UUID | None = None,
) -> list[SupplierRecord]:
    """Build SupplierRecords for the single supplier and every roster entry."""
    records: list[SupplierRecord] = []

    if fields.get("nome") or fields.get("razao_social"):
        records.append(_record(fields, company_id, source_preview_id))

    for key in ("fornecedores", "suppliers"):
        roster = fields.get(key)
        if not isinstance(roster, list):
            continue
        for entry in roster:
            if isinstance(entry, dict):
                records.append(_record(entry, company_id, source_preview_id))

    return records


def natural_key(record: SupplierRecord) -> str | None:
    """CNPJ digits, or "name:<FOLDED NAME>" when the supplier has no CNPJ."""
    if record.cnpj:
        return cnpj_digits(record.cnpj)
    if record.name:
        return "name:" + _WHITESPACE.sub(" ", fold_text(record.name))
    return None


def to_model(record: SupplierRecord) -> Supplier:
    return Supplier(
        company_id=record.company_id,
        name=record.name,
        cnpj=record.cnpj,
        registration_key=natural_key(record),
        contact_person=record.contact_person,
        email=record.email,
        phone=record.phone,
        address=record.address,
        supplier_type=record.supplier_type,
        status=record.status.value,
        source_preview_id=record.source_preview_id,
    )


TRANSFORMER = Transformer(
    table=DestinationTable.SUPPLIERS,
    transform=transform,
    rules=RULES,
    model=Supplier,
    key_column="registration_key",
    natural_key=natural_key,
    to_model=to_model,
    checks=(_cnpj_check,),
)
