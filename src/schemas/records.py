"""Typed candidate records produced by the record transformers.

Fields are deliberately optional: transformation never fails on a missing
value, the field rule set reports it instead so the operator sees every
problem in one pass.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from src.models.enums import RecordStatus, WasteClass


class WasteLogRecord(BaseModel):
    company_id: uuid.UUID
    mtr_number: str | None = None
    waste_description: str | None = None
    waste_class: WasteClass = WasteClass.II_B
    collection_date: date | None = None
    quantity: Decimal | None = None
    unit: str | None = None
    destination_name: str | None = None
    cost: Decimal | None = None
    status: RecordStatus = RecordStatus.ACTIVE
    source_preview_id: uuid.UUID | None = None


class SupplierRecord(BaseModel):
    company_id: uuid.UUID
    name: str | None = None
    cnpj: str | None = None
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    supplier_type: str | None = None
    status: RecordStatus = RecordStatus.ACTIVE
    source_preview_id: uuid.UUID | None = None


class LicenseConditionRecord(BaseModel):
    code: str | None = None
    section_title: str | None = None
    text: str | None = None
    category: str = "geral"
    deadline_days: int | None = None
    law_refs: list[str] = Field(default_factory=list)
    source_snippet: str | None = None


class LicenseRecord(BaseModel):
    company_id: uuid.UUID
    license_number: str | None = None
    issuing_agency: str | None = None
    issue_date: date | None = None
    expiration_date: date | None = None
    company_name: str | None = None
    cnpj: str | None = None
    address: str | None = None
    activity_description: str | None = None
    company_size: str | None = None
    status: RecordStatus = RecordStatus.ACTIVE
    source_preview_id: uuid.UUID | None = None
    conditions: list[LicenseConditionRecord] = Field(default_factory=list)


CandidateRecord = WasteLogRecord | SupplierRecord | LicenseRecord


class ValidationIssue(BaseModel):
    """One broken field rule on one candidate record."""

    model_config = {"frozen": True}

    table: str
    record_index: int
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.table}[{self.record_index}].{self.field}: {self.message}"
