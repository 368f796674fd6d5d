"""Async httpx client for callers of the pipeline HTTP API.

Structured error bodies are mapped back onto the PipelineError hierarchy,
so callers can branch on `retryable` exactly as the server decided it.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from src.config import settings
from src.errors import ERRORS_BY_NAME, ExternalServiceFailed, PipelineError
from src.schemas.approval import (
    ApprovalRequest,
    ApprovalResult,
    ComparisonOut,
    ExtractionOutcome,
    RejectionResult,
    UploadResult,
)
from src.schemas.status import ExtractionStatus, extraction_status_adapter
from src.status.poller import poll_until_terminal, run_with_retry

logger = logging.getLogger(__name__)


class PipelineClient:
    """Calls the pipeline API on behalf of an authenticated user.

    Usage:
        async with PipelineClient("https://esg.example.com", token) as client:
            outcome = await client.extract_with_retry(file_id)
            status = await client.wait_for_extraction(file_id, outcome.extraction_id)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 180.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> PipelineClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Extraction ───────────────────────────────────────────────────

    async def upload(self, filename: str, data: bytes, mime_type: str) -> UploadResult:
        body = await self._request("POST", "/files", files={"file": (filename, data, mime_type)})
        return UploadResult.model_validate(body)

    async def extract(self, file_id: uuid.UUID) -> ExtractionOutcome:
        body = await self._request("POST", "/extractions", json={"file_id": str(file_id)})
        return ExtractionOutcome.model_validate(body)

    async def extract_with_retry(
        self,
        file_id: uuid.UUID,
        max_retries: int | None = None,
    ) -> ExtractionOutcome:
        """Invoke extraction, retrying retryable failures on the backoff schedule."""
        return await run_with_retry(lambda: self.extract(file_id), max_retries=max_retries)

    async def get_status(self, file_id: uuid.UUID, job_id: uuid.UUID | None = None) -> ExtractionStatus:
        params = {"file_id": str(file_id)}
        if job_id is not None:
            params["job_id"] = str(job_id)
        body = await self._request("GET", "/extractions/status", params=params)
        return extraction_status_adapter.validate_python(body)

    async def wait_for_extraction(
        self,
        file_id: uuid.UUID,
        job_id: uuid.UUID | None = None,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> ExtractionStatus:
        """Poll status until the extraction completes or fails."""
        return await poll_until_terminal(
            lambda: self.get_status(file_id, job_id),
            interval=interval if interval is not None else settings.pipeline.poll_interval_seconds,
            timeout=timeout,
        )

    # ── Review ───────────────────────────────────────────────────────

    async def comparison(self, preview_id: uuid.UUID) -> ComparisonOut:
        body = await self._request("GET", f"/previews/{preview_id}/comparison")
        return ComparisonOut.model_validate(body)

    async def approve(self, request: ApprovalRequest) -> ApprovalResult:
        body = await self._request("POST", "/approvals", json=request.model_dump(mode="json"))
        return ApprovalResult.model_validate(body)

    async def reject(self, preview_id: uuid.UUID, reason: str) -> RejectionResult:
        body = await self._request("POST", f"/previews/{preview_id}/reject", json={"reason": reason})
        return RejectionResult.model_validate(body)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    # ── Internals ────────────────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Pipeline API %s %s failed: %s", method, url, exc)
            raise ExternalServiceFailed("The pipeline service is unreachable. Please retry later.") from exc

        if response.is_success:
            return response.json()
        raise error_from_response(response)


def error_from_response(response: httpx.Response) -> PipelineError:
    """Rebuild the server-side PipelineError from a structured error body."""
    try:
        body: dict[str, Any] = response.json()
    except ValueError:
        body = {}

    message = body.get("error") or body.get("detail") or f"HTTP {response.status_code}"
    if not isinstance(message, str):
        message = str(message)
    details = body.get("details") or []

    error_cls = ERRORS_BY_NAME.get(body.get("error_type", ""))
    if error_cls is not None:
        return error_cls(message, details=details)
    if response.status_code >= 500:
        return ExternalServiceFailed(message, details=details)

    error = PipelineError(message, details=details)
    error.status_code = response.status_code
    return error
