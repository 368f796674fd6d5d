"""Async httpx client for the object store holding uploaded documents.

Speaks the Supabase storage REST dialect:
    POST   /object/{bucket}/{path}        upload
    GET    /object/{bucket}/{path}        download
    DELETE /object/{bucket}               remove (body: {"prefixes": [...]})
    POST   /object/sign/{bucket}/{path}   signed read URL
Auth: service key as bearer token.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.config import settings
from src.errors import DownloadFailed, ExternalServiceFailed

logger = logging.getLogger(__name__)


class ObjectStoreGateway:
    """Thin async wrapper around the object store."""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        bucket: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.storage.storage_url).rstrip("/")
        self._bucket = bucket or settings.storage.storage_bucket
        key = service_key if service_key is not None else settings.storage.storage_service_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {key}", "apikey": key},
            timeout=httpx.Timeout(60.0, connect=10.0),
            transport=transport,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    async def upload(self, path: str, data: bytes, mime_type: str) -> None:
        """Store `data` at `path`. Never overwrites an existing object."""
        try:
            response = await self._client.post(
                f"/object/{self._bucket}/{path}",
                content=data,
                headers={"Content-Type": mime_type, "x-upsert": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Object store upload failed for %s", path)
            raise ExternalServiceFailed("Could not store the uploaded file. Please retry.") from exc
        logger.info("Stored object %s (%d bytes)", path, len(data))

    async def download(self, path: str) -> bytes:
        """Fetch the object at `path`. Transport errors and 4xx/5xx raise DownloadFailed."""
        try:
            response = await self._client.get(f"/object/{self._bucket}/{path}")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Object store download HTTP %s for %s", exc.response.status_code, path)
            raise DownloadFailed(
                f"Could not download the document (HTTP {exc.response.status_code})."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Object store download failed for %s: %s", path, exc)
            raise DownloadFailed("Could not download the document.") from exc
        return response.content

    async def remove(self, paths: list[str]) -> None:
        """Delete objects. Used to roll back an upload whose metadata row failed."""
        if not paths:
            return
        try:
            response = await self._client.request(
                "DELETE",
                f"/object/{self._bucket}",
                json={"prefixes": paths},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Object store removal failed for %s", paths)
            raise ExternalServiceFailed("Could not remove stored objects.") from exc

    async def create_signed_url(self, path: str, expires_in: int | None = None) -> str:
        """Return an absolute, time-limited read URL for `path`."""
        ttl = expires_in or settings.storage.signed_url_ttl
        try:
            response = await self._client.post(
                f"/object/sign/{self._bucket}/{path}",
                json={"expiresIn": ttl},
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except httpx.HTTPError as exc:
            logger.exception("Signed URL creation failed for %s", path)
            raise ExternalServiceFailed("Could not create a download link.") from exc

        signed = payload.get("signedURL") or payload.get("signedUrl")
        if not signed:
            raise ExternalServiceFailed("Object store returned no signed URL.")
        return signed if signed.startswith("http") else f"{self._base_url}{signed}"

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


# Module-level singleton
storage_gateway = ObjectStoreGateway()
