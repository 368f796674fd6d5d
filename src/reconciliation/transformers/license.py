"""License transformer: an environmental license and its conditions -> LicenseRecord."""

from __future__ import annotations

import uuid
from typing import Any

from src.decoders.cnpj import format_cnpj, validate_cnpj_checksum
from src.models.enums import CompanySize, DestinationTable, RecordStatus
from src.models.license import License, LicenseCondition
from src.reconciliation.transformers.base import Transformer
from src.reconciliation.transformers.normalize import clean_text, fold_text, parse_date, parse_int
from src.reconciliation.transformers.validation import FieldRule
from src.schemas.records import LicenseConditionRecord, LicenseRecord

DEFAULT_CATEGORY = "geral"
_COMPANY_SIZES = {size.value.upper(): size.value for size in CompanySize}

RULES: tuple[FieldRule, ...] = (
    FieldRule("license_number", required=True, non_empty=True),
    FieldRule("issuing_agency", non_empty=True),
)


def _license_checks(record: LicenseRecord) -> list[tuple[str, str]]:
    problems: list[tuple[str, str]] = []
    if record.issue_date and record.expiration_date and record.expiration_date < record.issue_date:
        problems.append(("expiration_date", "must not be earlier than issue_date"))
    if record.cnpj and not validate_cnpj_checksum(record.cnpj):
        problems.append(("cnpj", f"invalid CNPJ check digits ({record.cnpj})"))
    for index, condition in enumerate(record.conditions):
        if not condition.text:
            problems.append((f"conditions[{index}].text", "is required"))
        if condition.deadline_days is not None and condition.deadline_days < 0:
            problems.append((f"conditions[{index}].deadline_days", "must not be negative"))
    return problems


def _company_size(value: Any) -> str | None:
    folded = fold_text(clean_text(value))
    return _COMPANY_SIZES.get(folded)


def _condition(entry: dict[str, Any]) -> LicenseConditionRecord:
    law_refs = entry.get("law_refs") or []
    if isinstance(law_refs, str):
        law_refs = [law_refs]
    return LicenseConditionRecord(
        code=clean_text(entry.get("code")),
        section_title=clean_text(entry.get("section_title")),
        text=clean_text(entry.get("text") or entry.get("description")),
        category=clean_text(entry.get("category")) or DEFAULT_CATEGORY,
        deadline_days=parse_int(entry.get("deadline_days")),
        law_refs=[ref for ref in (clean_text(r) for r in law_refs) if ref],
        source_snippet=clean_text(entry.get("source_snippet")),
    )


def transform(
    fields: dict[str, Any],
    company_id: uuid.UUID,
    source_preview_id: uuid.UUID | None = None,
) -> list[LicenseRecord]:
    """One LicenseRecord with every condition, in document order."""
    cnpj = clean_text(fields.get("cnpj"))
    conditions = [_condition(c) for c in fields.get("conditions") or [] if isinstance(c, dict)]
    return [LicenseRecord(
        company_id=company_id,
        license_number=clean_text(fields.get("license_number")),
        issuing_agency=clean_text(fields.get("issuing_agency")),
        issue_date=parse_date(fields.get("issue_date")),
        expiration_date=parse_date(fields.get("expiration_date")),
        company_name=clean_text(fields.get("company_name") or fields.get("razao_social")),
        cnpj=format_cnpj(cnpj) if cnpj else None,
        address=clean_text(fields.get("address")),
        activity_description=clean_text(fields.get("activity_description")),
        company_size=_company_size(fields.get("company_size")),
        status=RecordStatus.ACTIVE,
        source_preview_id=source_preview_id,
        conditions=conditions,
    )]


def natural_key(record: LicenseRecord) -> str | None:
    return record.license_number


def to_model(record: LicenseRecord) -> License:
    return License(
        company_id=record.company_id,
        license_number=record.license_number,
        issuing_agency=record.issuing_agency,
        issue_date=record.issue_date,
        expiration_date=record.expiration_date,
        company_name=record.company_name,
        cnpj=record.cnpj,
        address=record.address,
        activity_description=record.activity_description,
        company_size=record.company_size,
        status=record.status.value,
        source_preview_id=record.source_preview_id,
        conditions=[
            LicenseCondition(
                code=c.code,
                section_title=c.section_title,
                text=c.text,
                category=c.category,
                deadline_days=c.deadline_days,
                law_refs=c.law_refs or None,
                source_snippet=c.source_snippet,
            )
            for c in record.conditions
        ],
    )


TRANSFORMER = Transformer(
    table=DestinationTable.LICENSES,
    transform=transform,
    rules=RULES,
    model=License,
    key_column="license_number",
    natural_key=natural_key,
    to_model=to_model,
    checks=(_license_checks,),
)
