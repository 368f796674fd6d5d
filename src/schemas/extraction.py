"""Pydantic schemas for the AI extraction contract.

ExtractionPayload mirrors the versioned JSON Schema sent to the model
(see src.extraction.contract). Scalar fields become one staging item each;
every element of a repeating list becomes its own staging item.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Repeating elements ───────────────────────────────────────────────


class FieldEvidence(BaseModel):
    """Literal snippet backing one scalar field."""

    field: str
    source_snippet: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class Coordinates(BaseModel):
    latitude: float | None = None
    longitude: float | None = None


class ConditionEntry(BaseModel):
    """One license condition, exactly as stated in the document."""

    model_config = ConfigDict(extra="ignore")

    code: str | None = None
    section_title: str | None = None
    text: str
    category: str | None = None
    deadline_days: int | None = None
    law_refs: list[str] = Field(default_factory=list)
    source_snippet: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class WasteEntry(BaseModel):
    """One row of a monthly waste breakdown."""

    model_config = ConfigDict(extra="ignore")

    month: str
    year: int | None = None
    waste_type: str
    quantity: float | str | None = None
    unit: str | None = None
    receiver: str | None = None
    destination: str | None = None
    cost: float | str | None = None
    mtr_number: str | None = None
    source_snippet: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class SupplierEntry(BaseModel):
    """One supplier listed in a registration or roster document."""

    model_config = ConfigDict(extra="ignore")

    razao_social: str | None = None
    nome: str | None = None
    cnpj: str | None = None
    contato: str | None = None
    email: str | None = None
    telefone: str | None = None
    endereco: str | None = None
    tipo: str | None = None
    source_snippet: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


# ── Top-level payload ────────────────────────────────────────────────


class ExtractionPayload(BaseModel):
    """Structured model response. `confidence` and `_evidence_chars` are mandatory."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    confidence: float = Field(ge=0.0, le=1.0)
    evidence_chars: int = Field(alias="_evidence_chars", ge=0)
    target_table: str | None = None

    # License scalars
    license_number: str | None = None
    issuing_agency: str | None = None
    issue_date: str | None = None  # YYYY-MM-DD
    expiration_date: str | None = None  # YYYY-MM-DD
    company_name: str | None = None
    cnpj: str | None = None
    address: str | None = None
    coordinates: Coordinates | None = None
    activity_description: str | None = None
    company_size: str | None = None

    # Supplier scalars
    razao_social: str | None = None
    contato: str | None = None
    email: str | None = None
    telefone: str | None = None

    # Waste report scalars
    data_start: str | None = None  # YYYY-MM-DD
    data_end: str | None = None  # YYYY-MM-DD

    field_evidence: list[FieldEvidence] = Field(default_factory=list)
    conditions: list[ConditionEntry] = Field(default_factory=list)
    waste_entries: list[WasteEntry] = Field(default_factory=list)
    suppliers: list[SupplierEntry] = Field(default_factory=list)

    @field_validator("evidence_chars", mode="before")
    @classmethod
    def _coerce_evidence(cls, v: Any) -> Any:
        # Models often answer 412.0 for an integer count
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v

    def evidence_for(self, field_name: str) -> FieldEvidence | None:
        """Return the evidence entry backing a scalar field, if the model gave one."""
        for evidence in self.field_evidence:
            if evidence.field == field_name:
                return evidence
        return None


# Scalar fields that become one staging item each (coordinates serialized as JSON)
SCALAR_FIELDS: tuple[str, ...] = (
    "license_number",
    "issuing_agency",
    "issue_date",
    "expiration_date",
    "company_name",
    "cnpj",
    "address",
    "coordinates",
    "activity_description",
    "company_size",
    "razao_social",
    "contato",
    "email",
    "telefone",
    "data_start",
    "data_end",
)

# Repeating list attribute → staging field name for each element
REPEATING_FIELDS: dict[str, str] = {
    "conditions": "condition",
    "waste_entries": "waste_entry",
    "suppliers": "supplier",
}
