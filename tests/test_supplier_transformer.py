"""Tests for the supplier transformer."""

from __future__ import annotations

import uuid

from src.reconciliation.transformers import supplier
from src.reconciliation.transformers.validation import validate_records


class TestTransform:
    def test_single_registration(self) -> None:
        fields = {
            "razao_social": "Recicla Brasil Ltda",
            "cnpj": "11222333000181",
            "contato": "Ana",
            "email": "ana@recicla.com.br",
        }
        records = supplier.transform(fields, uuid.uuid4())
        assert len(records) == 1
        record = records[0]
        assert record.name == "Recicla Brasil Ltda"
        assert record.cnpj == "11.222.333/0001-81"
        assert record.contact_person == "Ana"
        assert record.supplier_type == supplier.DEFAULT_SUPPLIER_TYPE

    def test_nome_preferred_over_razao_social(self) -> None:
        records = supplier.transform({"nome": "Recicla", "razao_social": "Recicla Brasil Ltda"}, uuid.uuid4())
        assert records[0].name == "Recicla"

    def test_roster(self) -> None:
        fields = {
            "fornecedores": [
                {"nome": "Transportes Silva", "tipo": "transporte"},
                {"nome": "Metais SP", "cnpj": "00.000.000/0001-91"},
            ]
        }
        records = supplier.transform(fields, uuid.uuid4())
        assert [r.name for r in records] == ["Transportes Silva", "Metais SP"]
        assert records[0].supplier_type == "transporte"

    def test_nothing_to_build(self) -> None:
        assert supplier.transform({"cnpj": "11222333000181"}, uuid.uuid4()) == []


class TestNaturalKey:
    def test_cnpj_digits(self) -> None:
        record = supplier.transform({"nome": "A", "cnpj": "11.222.333/0001-81"}, uuid.uuid4())[0]
        assert supplier.natural_key(record) == "11222333000181"

    def test_folded_name_without_cnpj(self) -> None:
        record = supplier.transform({"nome": "  Transportes   São João "}, uuid.uuid4())[0]
        assert supplier.natural_key(record) == "name:TRANSPORTES SAO JOAO"

    def test_to_model_sets_registration_key(self) -> None:
        record = supplier.transform({"nome": "A", "cnpj": "11.222.333/0001-81"}, uuid.uuid4())[0]
        assert supplier.to_model(record).registration_key == "11222333000181"


class TestValidation:
    def test_invalid_checksum_reported(self) -> None:
        records = supplier.transform({"nome": "A", "cnpj": "11.222.333/0001-82"}, uuid.uuid4())
        issues = validate_records("suppliers", records, supplier.RULES, supplier.TRANSFORMER.checks)
        assert len(issues) == 1
        assert issues[0].field == "cnpj"

    def test_missing_name_in_roster(self) -> None:
        records = supplier.transform({"suppliers": [{"cnpj": "11222333000181"}]}, uuid.uuid4())
        issues = validate_records("suppliers", records, supplier.RULES, supplier.TRANSFORMER.checks)
        assert [(i.field, i.message) for i in issues] == [("name", "is required")]
