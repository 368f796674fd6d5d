"""Tests for the extraction quality gate."""

from __future__ import annotations

from src.extraction.quality import ILLEGIBLE_DOCUMENT_MESSAGE, evaluate_quality
from src.schemas.extraction import ExtractionPayload


def _payload(confidence: float, evidence: int) -> ExtractionPayload:
    return ExtractionPayload.model_validate({"confidence": confidence, "_evidence_chars": evidence})


class TestEvaluateQuality:
    def test_passes_at_thresholds(self) -> None:
        report = evaluate_quality(_payload(0.5, 200), min_confidence=0.5, min_evidence_chars=200)
        assert report.passed is True
        assert report.message == ""

    def test_high_confidence_little_evidence_fails(self) -> None:
        report = evaluate_quality(_payload(0.9, 50), min_confidence=0.5, min_evidence_chars=200)
        assert report.passed is False
        assert len(report.violations) == 1
        assert "evidence 50 chars" in report.violations[0]

    def test_low_confidence_fails(self) -> None:
        report = evaluate_quality(_payload(0.3, 1000), min_confidence=0.5, min_evidence_chars=200)
        assert report.passed is False
        assert "confidence 0.30" in report.violations[0]

    def test_both_violations_reported(self) -> None:
        report = evaluate_quality(_payload(0.0, 0), min_confidence=0.5, min_evidence_chars=200)
        assert len(report.violations) == 2

    def test_failure_message_mentions_illegible_or_scanned(self) -> None:
        report = evaluate_quality(_payload(0.0, 0), min_confidence=0.5, min_evidence_chars=200)
        assert report.message == ILLEGIBLE_DOCUMENT_MESSAGE
        assert "illegible" in report.message
        assert "scanned" in report.message
