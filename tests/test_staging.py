"""Tests for staging item builders and review status transitions."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from src.extraction.staging import (
    auto_approve_eligible,
    build_confidence_scores,
    build_field_bag,
    build_staging_items,
    item_key,
    resolve_job_items,
    transition_review_status,
)
from src.models.enums import ReviewStatus
from src.schemas.extraction import ExtractionPayload


def _license_payload() -> ExtractionPayload:
    return ExtractionPayload.model_validate({
        "confidence": 0.82,
        "_evidence_chars": 900,
        "target_table": "licenses",
        "license_number": "LO 1234/2023",
        "cnpj": "11.222.333/0001-81",
        "coordinates": {"latitude": -23.5, "longitude": -46.6},
        "field_evidence": [
            {"field": "license_number", "source_snippet": "LICENÇA DE OPERAÇÃO Nº LO 1234/2023", "confidence": 0.97},
        ],
        "conditions": [
            {"code": "1", "text": "Monitorar efluentes", "source_snippet": "1. Monitorar efluentes", "confidence": 0.9},
            {"code": "2", "text": "Enviar relatório anual", "source_snippet": "2. Enviar relatório anual"},
            {"code": "3", "text": "Manter bacia de contenção", "source_snippet": "3. Manter bacia", "confidence": 0.6},
        ],
    })


class TestBuildStagingItems:
    def test_one_item_per_condition(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        conditions = [i for i in items if i.field_name == "condition"]
        assert len(conditions) == 3
        assert [c.row_index for c in conditions] == [0, 1, 2]

    def test_scalar_items_have_no_row_index(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        scalars = {i.field_name: i for i in items if i.row_index is None}
        assert set(scalars) == {"license_number", "cnpj", "coordinates"}

    def test_evidence_snippet_and_confidence_used(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        number = next(i for i in items if i.field_name == "license_number")
        assert number.source_snippet == "LICENÇA DE OPERAÇÃO Nº LO 1234/2023"
        assert number.confidence == 0.97

    def test_missing_confidence_inherits_document_confidence(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        cnpj = next(i for i in items if i.field_name == "cnpj")
        second = next(i for i in items if i.field_name == "condition" and i.row_index == 1)
        assert cnpj.confidence == 0.82
        assert second.confidence == 0.82

    def test_rows_keep_their_snippet(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        first = next(i for i in items if i.field_name == "condition" and i.row_index == 0)
        assert first.source_snippet == "1. Monitorar efluentes"
        assert json.loads(first.extracted_value)["text"] == "Monitorar efluentes"

    def test_all_items_start_pending(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        assert {i.review_status for i in items} == {ReviewStatus.PENDING.value}


class TestFieldBag:
    def test_rows_regrouped_in_order(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        bag = build_field_bag(reversed(items))
        assert [c["code"] for c in bag["conditions"]] == ["1", "2", "3"]
        assert bag["coordinates"] == {"latitude": -23.5, "longitude": -46.6}
        assert bag["license_number"] == "LO 1234/2023"

    def test_confidence_scores_keyed_like_bag(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        scores = build_confidence_scores(items)
        assert scores["conditions[2]"] == 0.6
        assert scores["license_number"] == 0.97

    def test_item_key(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        keys = {item_key(i) for i in items}
        assert {"conditions[0]", "conditions[1]", "conditions[2]", "cnpj"} <= keys


class TestReviewTransitions:
    def test_pending_to_approved(self) -> None:
        item = build_staging_items(uuid.uuid4(), _license_payload())[0]
        assert transition_review_status(item, ReviewStatus.APPROVED) is True
        assert item.review_status == ReviewStatus.APPROVED.value
        assert item.reviewed_at is not None

    def test_resolved_item_never_changes(self) -> None:
        item = build_staging_items(uuid.uuid4(), _license_payload())[0]
        transition_review_status(item, ReviewStatus.REJECTED)
        assert transition_review_status(item, ReviewStatus.APPROVED) is False
        assert item.review_status == ReviewStatus.REJECTED.value

    def test_repeated_transition_is_noop(self) -> None:
        item = build_staging_items(uuid.uuid4(), _license_payload())[0]
        transition_review_status(item, ReviewStatus.APPROVED)
        reviewed_at = item.reviewed_at
        assert transition_review_status(item, ReviewStatus.APPROVED) is False
        assert item.reviewed_at == reviewed_at

    def test_back_to_pending_refused(self) -> None:
        item = build_staging_items(uuid.uuid4(), _license_payload())[0]
        assert transition_review_status(item, ReviewStatus.PENDING) is False


class TestAutoApprove:
    def test_never_below_threshold(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        eligible = auto_approve_eligible(items, threshold=0.9)
        assert eligible
        assert all(i.confidence >= 0.9 for i in eligible)

    def test_resolved_items_not_eligible(self) -> None:
        items = build_staging_items(uuid.uuid4(), _license_payload())
        for item in items:
            transition_review_status(item, ReviewStatus.REJECTED)
        assert auto_approve_eligible(items, threshold=0.0) == []


class TestResolveJobItems:
    @pytest.mark.asyncio()
    async def test_excluded_rows_rejected(self) -> None:
        job_id = uuid.uuid4()
        items = build_staging_items(job_id, _license_payload())
        with patch("src.extraction.staging.get_job_items", new_callable=AsyncMock, return_value=items):
            changed = await resolve_job_items(
                AsyncMock(), job_id, ReviewStatus.APPROVED, excluded_fields=["conditions[1]", "cnpj"]
            )

        assert changed == len(items)
        statuses = {item_key(i): i.review_status for i in items}
        assert statuses["conditions[1]"] == ReviewStatus.REJECTED.value
        assert statuses["cnpj"] == ReviewStatus.REJECTED.value
        assert statuses["conditions[0]"] == ReviewStatus.APPROVED.value

    @pytest.mark.asyncio()
    async def test_second_resolution_changes_nothing(self) -> None:
        job_id = uuid.uuid4()
        items = build_staging_items(job_id, _license_payload())
        with patch("src.extraction.staging.get_job_items", new_callable=AsyncMock, return_value=items):
            await resolve_job_items(AsyncMock(), job_id, ReviewStatus.APPROVED)
            changed = await resolve_job_items(AsyncMock(), job_id, ReviewStatus.REJECTED)
        assert changed == 0
