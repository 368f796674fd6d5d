"""Tests for the license transformer and its record checks."""

from __future__ import annotations

import uuid
from datetime import date

from src.reconciliation.transformers import license
from src.reconciliation.transformers.validation import validate_records


def _license_fields() -> dict:
    return {
        "license_number": "LO 1234/2023",
        "issuing_agency": "CETESB",
        "issue_date": "2023-05-10",
        "expiration_date": "10/05/2027",
        "company_name": "Indústria Exemplo S.A.",
        "cnpj": "11222333000181",
        "company_size": "Médio",
        "conditions": [
            {"code": "1", "text": "Monitorar efluentes", "law_refs": "CONAMA 430", "source_snippet": "1. Monitorar"},
            {"code": "2", "text": "Relatório anual", "category": "relatorio", "deadline_days": "365"},
        ],
    }


class TestTransform:
    def test_single_record_with_conditions(self) -> None:
        records = license.transform(_license_fields(), uuid.uuid4())
        assert len(records) == 1
        record = records[0]
        assert record.license_number == "LO 1234/2023"
        assert record.issue_date == date(2023, 5, 10)
        assert record.expiration_date == date(2027, 5, 10)
        assert record.cnpj == "11.222.333/0001-81"
        assert record.company_size == "medio"
        assert len(record.conditions) == 2

    def test_condition_defaults(self) -> None:
        conditions = license.transform(_license_fields(), uuid.uuid4())[0].conditions
        assert conditions[0].category == license.DEFAULT_CATEGORY
        assert conditions[0].law_refs == ["CONAMA 430"]
        assert conditions[1].deadline_days == 365

    def test_unknown_company_size_dropped(self) -> None:
        fields = {**_license_fields(), "company_size": "enorme"}
        assert license.transform(fields, uuid.uuid4())[0].company_size is None

    def test_to_model_keeps_conditions(self) -> None:
        record = license.transform(_license_fields(), uuid.uuid4())[0]
        row = license.to_model(record)
        assert [c.code for c in row.conditions] == ["1", "2"]
        assert row.conditions[1].law_refs is None


class TestChecks:
    def test_valid_license_passes(self) -> None:
        records = license.transform(_license_fields(), uuid.uuid4())
        assert validate_records("licenses", records, license.RULES, license.TRANSFORMER.checks) == []

    def test_every_problem_collected(self) -> None:
        fields = {
            **_license_fields(),
            "license_number": None,
            "issuing_agency": "  ",
            "expiration_date": "2020-01-01",
            "cnpj": "11.222.333/0001-80",
            "conditions": [{"code": "9", "deadline_days": -5}],
        }
        records = license.transform(fields, uuid.uuid4())
        issues = validate_records("licenses", records, license.RULES, license.TRANSFORMER.checks)
        fields_with_issues = {i.field for i in issues}
        assert fields_with_issues == {
            "license_number",
            "expiration_date",
            "cnpj",
            "conditions[0].text",
            "conditions[0].deadline_days",
        }
