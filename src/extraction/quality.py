"""Quality gate applied to every parsed extraction before anything is staged.

Synchronous, no I/O. Each threshold is checked independently, so a response
with high confidence but almost no literal evidence still fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.schemas.extraction import ExtractionPayload

ILLEGIBLE_DOCUMENT_MESSAGE = (
    "Document is illegible or scanned: not enough readable evidence was found. "
    "Upload a text-based PDF or a clearer scan."
)
SERVICE_UNAVAILABLE_MESSAGE = "The AI document service is unavailable. Please retry later."


@dataclass
class QualityReport:
    """Result of the quality gate."""

    confidence: float
    evidence_chars: int
    violations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def message(self) -> str:
        return "" if self.passed else ILLEGIBLE_DOCUMENT_MESSAGE


def evaluate_quality(
    payload: ExtractionPayload,
    min_confidence: float,
    min_evidence_chars: int,
) -> QualityReport:
    """Check overall confidence and evidence size against the policy thresholds.

    Args:
        payload: Validated model response.
        min_confidence: Lowest acceptable overall confidence (inclusive).
        min_evidence_chars: Lowest acceptable evidence size (inclusive).

    Returns:
        QualityReport listing every violated threshold.
    """
    report = QualityReport(confidence=payload.confidence, evidence_chars=payload.evidence_chars)

    if payload.confidence < min_confidence:
        report.violations.append(
            f"confidence {payload.confidence:.2f} below minimum {min_confidence:.2f}"
        )
    if payload.evidence_chars < min_evidence_chars:
        report.violations.append(
            f"evidence {payload.evidence_chars} chars below minimum {min_evidence_chars}"
        )

    return report
