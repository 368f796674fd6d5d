"""Pipeline error taxonomy.

Every error carries an HTTP-style status code, whether a caller may retry it,
and a user-facing message. The API layer serializes them into structured
bodies, so callers never receive a bare failure.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for all expected pipeline failures."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, user_message: str, *, details: list[Any] | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.details = details or []

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error": self.user_message,
            "error_type": self.error_type,
            "retryable": self.retryable,
            "details": self.details,
        }


class UploadRejected(PipelineError):
    """Unsupported MIME type or file over the size limit."""

    status_code = 400


class DownloadFailed(PipelineError):
    """The object store could not return the file."""

    status_code = 500
    retryable = True


class ExternalServiceFailed(PipelineError):
    """AI service transport failure or non-2xx response."""

    status_code = 500
    retryable = True


class SchemaViolation(PipelineError):
    """Model output does not match the extraction contract. Never retried automatically."""

    status_code = 500


class QualityGateFailed(PipelineError):
    """Confidence or evidence below policy thresholds: usually a poor scan."""

    status_code = 422


class ValidationFailed(PipelineError):
    """Transformed records break field rules. `details` lists every issue."""

    status_code = 400


class UnsupportedDestination(PipelineError):
    """No transformer exists for the resolved destination table."""

    status_code = 400


class Unauthorized(PipelineError):
    status_code = 401


class NotFound(PipelineError):
    status_code = 404


class PreviewNotReady(PipelineError):
    """The preview's extraction job has not completed."""

    status_code = 409


class PreviewResolved(PipelineError):
    """The preview already reached a terminal state that forbids this action."""

    status_code = 409


ERRORS_BY_NAME: dict[str, type[PipelineError]] = {
    cls.__name__: cls
    for cls in (
        UploadRejected,
        DownloadFailed,
        ExternalServiceFailed,
        SchemaViolation,
        QualityGateFailed,
        ValidationFailed,
        UnsupportedDestination,
        Unauthorized,
        NotFound,
        PreviewNotReady,
        PreviewResolved,
    )
}
