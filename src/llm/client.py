"""OpenAI-compatible document AI client.

Documents are uploaded to the service's /files endpoint, referenced from a
/chat/completions request with a json_schema response format, and deleted
again afterwards. `uploaded_file()` scopes the remote copy so it is removed
on every exit path, including failures.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from src.audit.events import emit
from src.config import settings
from src.errors import ExternalServiceFailed
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class AIDocumentClient:
    """Async client for the external document-understanding service.

    Transport errors and non-2xx responses raise ExternalServiceFailed
    (retryable). The raw message content is returned unparsed: validating it
    against the extraction contract is the caller's job.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.ai.ai_base_url).rstrip("/")
        self.model = model or settings.ai.extraction_model
        key = api_key if api_key is not None else settings.ai.ai_api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {key}"},
            timeout=httpx.Timeout(float(settings.ai.extraction_timeout), connect=10.0),
            transport=transport,
        )

    async def upload_file(self, filename: str, data: bytes, mime_type: str) -> str:
        """Upload a document and return the remote file id."""
        try:
            response = await self._client.post(
                "/files",
                data={"purpose": "assistants"},
                files={"file": (filename, data, mime_type)},
                timeout=float(settings.ai.upload_timeout),
            )
            response.raise_for_status()
            remote_id: str = response.json()["id"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            await emit(SystemEvent(
                event_type=EventType.AI_ERROR,
                data={"operation": "upload_file", "error": _describe(exc)},
                source_module="llm.client",
            ))
            logger.exception("AI file upload failed for %s", filename)
            raise ExternalServiceFailed("The AI document service is unavailable. Please retry later.") from exc

        logger.info("Uploaded %s to AI service as %s", filename, remote_id)
        return remote_id

    async def delete_file(self, remote_id: str) -> None:
        response = await self._client.delete(f"/files/{remote_id}")
        response.raise_for_status()
        logger.debug("Deleted remote file %s", remote_id)

    @contextlib.asynccontextmanager
    async def uploaded_file(
        self,
        filename: str,
        data: bytes,
        mime_type: str,
    ) -> AsyncGenerator[str, None]:
        """Upload a document for the duration of the block, then delete it.

        Cleanup failures are logged and emitted; they never replace the
        outcome of the block.
        """
        remote_id = await self.upload_file(filename, data, mime_type)
        try:
            yield remote_id
        finally:
            try:
                await self.delete_file(remote_id)
            except httpx.HTTPError as exc:
                logger.warning("Failed to delete remote file %s: %s", remote_id, exc)
                await emit(SystemEvent(
                    event_type=EventType.AI_FILE_CLEANUP_FAILED,
                    data={"remote_file_id": remote_id, "error": str(exc)},
                    source_module="llm.client",
                ))

    async def complete_structured(
        self,
        remote_file_id: str,
        instructions: str,
        schema_name: str,
        schema: dict[str, Any],
        temperature: float | None = None,
    ) -> str:
        """Ask the model to read the uploaded file and answer in the given JSON schema.

        Args:
            remote_file_id: Id returned by upload_file.
            instructions: Extraction instructions sent alongside the file.
            schema_name: Name of the json_schema response format.
            schema: The JSON Schema the answer must follow.
            temperature: Sampling temperature. Defaults to config value.

        Returns:
            The raw message content (expected to be JSON).
        """
        temperature = settings.ai.temperature if temperature is None else temperature
        prompt_hash = hashlib.md5(instructions.encode()).hexdigest()[:8]

        await emit(SystemEvent(
            event_type=EventType.AI_REQUEST,
            data={"model": self.model, "prompt_hash": prompt_hash, "schema": schema_name},
            source_module="llm.client",
        ))

        start = time.monotonic()
        try:
            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self.model,
                    "messages": [{
                        "role": "user",
                        "content": [
                            {"type": "text", "text": instructions},
                            {"type": "file", "file": {"file_id": remote_file_id}},
                        ],
                    }],
                    "response_format": {
                        "type": "json_schema",
                        "json_schema": {"name": schema_name, "schema": schema, "strict": False},
                    },
                    "temperature": temperature,
                },
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
            content: str = data["choices"][0]["message"]["content"] or ""

        except httpx.TimeoutException as exc:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            await emit(SystemEvent(
                event_type=EventType.AI_ERROR,
                data={"model": self.model, "error": "timeout", "latency_ms": elapsed_ms},
                source_module="llm.client",
            ))
            logger.error("AI timeout after %dms for model %s", elapsed_ms, self.model)
            raise ExternalServiceFailed("The AI document service timed out. Please retry later.") from exc

        except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            await emit(SystemEvent(
                event_type=EventType.AI_ERROR,
                data={"model": self.model, "error": _describe(exc)},
                source_module="llm.client",
            ))
            logger.exception("AI request failed for model %s", self.model)
            raise ExternalServiceFailed("The AI document service is unavailable. Please retry later.") from exc

        elapsed_ms = int((time.monotonic() - start) * 1000)
        usage = data.get("usage") or {}
        await emit(SystemEvent(
            event_type=EventType.AI_RESPONSE,
            data={
                "model": self.model,
                "latency_ms": elapsed_ms,
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
            },
            source_module="llm.client",
        ))
        logger.info(
            "AI response: model=%s latency=%dms chars=%d",
            self.model,
            elapsed_ms,
            len(content),
        )
        return content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http_{exc.response.status_code}"
    return str(exc) or type(exc).__name__


# Module-level singleton
ai_client = AIDocumentClient()
