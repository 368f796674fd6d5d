"""Tests for the waste log transformer."""

from __future__ import annotations

import re
import uuid
from datetime import date
from decimal import Decimal

from src.models.enums import WasteClass
from src.reconciliation.approval import apply_exclusions
from src.reconciliation.transformers import waste
from src.reconciliation.transformers.base import tag_row_positions
from src.reconciliation.transformers.validation import validate_records

_MTR = re.compile(r"^MTR-\d{6}-[0-9A-Z]{6}$")


def _monthly_report() -> dict:
    return {
        "data_start": "2024-01-01",
        "residuos_por_mes": {
            "JANEIRO": [
                {"tipo_residuo": "Óleo lubrificante usado", "quantidade": "120,5", "unidade_medida": "kg"},
                {"tipo_residuo": "Sucata metálica", "quantidade": "1.500", "receptor": "Metais SP"},
            ],
            "FEVEREIRO": [
                {"tipo_residuo": "Resíduo orgânico", "quantidade": 300, "mtr": "MTR-2024-0042"},
            ],
        },
    }


class TestClassifyWaste:
    def test_dangerous_keyword(self) -> None:
        assert waste.classify_waste("Óleo usado") == WasteClass.I

    def test_recyclable_keyword(self) -> None:
        assert waste.classify_waste("Papelão") == WasteClass.II_A

    def test_dangerous_wins_over_recyclable(self) -> None:
        assert waste.classify_waste("Sucata metálica contaminada com óleo") == WasteClass.I

    def test_default_inert(self) -> None:
        assert waste.classify_waste("Entulho de obra") == WasteClass.II_B

    def test_none(self) -> None:
        assert waste.classify_waste(None) == WasteClass.II_B


class TestTransform:
    def test_one_record_per_row(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        assert len(records) == 3

    def test_collection_date_on_default_day(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        assert records[0].collection_date == date(2024, 1, 15)
        assert records[2].collection_date == date(2024, 2, 15)

    def test_quantities_and_units(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        assert records[0].quantity == Decimal("120.5")
        assert records[0].unit == "KG"
        assert records[1].quantity == Decimal("1500")
        assert records[1].unit == waste.DEFAULT_UNIT
        assert records[1].destination_name == "Metais SP"

    def test_explicit_mtr_kept(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        assert records[2].mtr_number == "MTR-2024-0042"

    def test_generated_mtr_format_and_unique(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        generated = [r.mtr_number for r in records[:2]]
        assert all(_MTR.match(m) for m in generated)
        assert generated[0].startswith("MTR-202401-")
        assert len(set(generated)) == 2

    def test_generated_mtr_deterministic_per_preview(self) -> None:
        preview_id = uuid.uuid4()
        first = waste.transform(_monthly_report(), uuid.uuid4(), preview_id)
        second = waste.transform(_monthly_report(), uuid.uuid4(), preview_id)
        assert [r.mtr_number for r in first] == [r.mtr_number for r in second]

    def test_classes_assigned(self) -> None:
        records = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())
        assert records[0].waste_class == WasteClass.I
        assert records[1].waste_class == WasteClass.II_A
        assert records[2].waste_class == WasteClass.II_B

    def test_waste_entries_shape(self) -> None:
        fields = {
            "waste_entries": [
                {"month": "MAR", "year": 2023, "waste_type": "Plástico", "quantity": "80", "unit": "kg"},
            ]
        }
        records = waste.transform(fields, uuid.uuid4(), uuid.uuid4())
        assert records[0].collection_date == date(2023, 3, 15)
        assert records[0].waste_class == WasteClass.II_A

    def test_totals_shape_uses_period_start(self) -> None:
        fields = {"data_start": "2024-05-01", "tipos_residuos_quantidades_kg": {"Vidro": 40, "Papel": 12}}
        records = waste.transform(fields, uuid.uuid4(), uuid.uuid4())
        assert [r.collection_date for r in records] == [date(2024, 5, 15), date(2024, 5, 15)]
        assert {r.unit for r in records} == {"KG"}

    def test_unknown_month_left_for_validation(self) -> None:
        fields = {"waste_entries": [{"month": "???", "year": 2024, "waste_type": "Papel", "quantity": 5}]}
        records = waste.transform(fields, uuid.uuid4(), uuid.uuid4())
        assert records[0].collection_date is None
        issues = validate_records("waste_logs", records, waste.RULES)
        assert [i.field for i in issues] == ["collection_date"]

    def test_split_year_left_for_validation(self) -> None:
        fields = {"residuos_por_mes": {"MARÇO": [{"tipo_residuo": "Papel", "quantidade": 5, "ano": "2024/2025"}]}}
        records = waste.transform(fields, uuid.uuid4(), uuid.uuid4())
        assert records[0].collection_date is None
        issues = validate_records("waste_logs", records, waste.RULES)
        assert [i.field for i in issues] == ["collection_date"]

    def test_no_rows(self) -> None:
        assert waste.transform({"observacao": "nada"}, uuid.uuid4(), uuid.uuid4()) == []


class TestGenerateMtr:
    def test_avoids_taken_numbers(self) -> None:
        ref = uuid.uuid4()
        first = waste.generate_mtr_number(2024, 1, ref, "waste_entries:0", set())
        second = waste.generate_mtr_number(2024, 1, ref, "waste_entries:0", {first})
        assert first != second
        assert _MTR.match(second)

    def test_random_without_reference(self) -> None:
        assert _MTR.match(waste.generate_mtr_number(2024, 12, None, "waste_entries:0", set()))

    def test_natural_key_is_mtr(self) -> None:
        record = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())[2]
        assert waste.natural_key(record) == "MTR-2024-0042"

    def test_to_model(self) -> None:
        record = waste.transform(_monthly_report(), uuid.uuid4(), uuid.uuid4())[0]
        row = waste.to_model(record)
        assert row.waste_class == "I"
        assert row.status == "active"
        assert row.mtr_number == record.mtr_number

    def test_mtr_survives_earlier_row_exclusion(self) -> None:
        fields = tag_row_positions({"data_start": "2024-01-01", "waste_entries": [
            {"month": "JAN", "waste_type": "Papel", "quantity": 10},
            {"month": "JAN", "waste_type": "Vidro", "quantity": 20},
        ]})
        preview_id = uuid.uuid4()
        full = waste.transform(fields, uuid.uuid4(), preview_id)
        partial = waste.transform(apply_exclusions(fields, ["waste_entries[0]"]), uuid.uuid4(), preview_id)
        assert [r.mtr_number for r in partial] == [full[1].mtr_number]
