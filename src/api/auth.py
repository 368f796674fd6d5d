"""Bearer-token authentication against the external identity provider.

The provider (Supabase-auth style) resolves a user token via GET /user; the
tenant comes from the user's app metadata. Every pipeline operation runs as
the resolved Identity and is scoped to its company_id.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import settings
from src.errors import Unauthorized
from src.schemas.approval import Identity

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class IdentityProvider:
    """Thin async wrapper around the identity provider's user endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.identity.identity_api_key
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.identity.identity_url).rstrip("/"),
            timeout=httpx.Timeout(float(settings.identity.identity_timeout), connect=5.0),
            transport=transport,
        )

    async def resolve(self, token: str) -> Identity:
        """Return the Identity behind `token`, or raise Unauthorized."""
        try:
            response = await self._client.get(
                "/user",
                headers={"Authorization": f"Bearer {token}", "apikey": self._api_key},
            )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable: %s", exc)
            raise Unauthorized("Could not verify credentials.") from exc

        if response.status_code != 200:
            raise Unauthorized("Invalid or expired token.")

        payload: dict[str, Any] = response.json()
        metadata = payload.get("app_metadata") or {}
        try:
            return Identity(
                user_id=uuid.UUID(str(payload["id"])),
                company_id=uuid.UUID(str(metadata["company_id"])),
            )
        except (KeyError, ValueError) as exc:
            logger.warning("Identity without a company for user %s", payload.get("id"))
            raise Unauthorized("User is not linked to a company.") from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


# Module-level singleton
identity_provider = IdentityProvider()


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> Identity:
    """FastAPI dependency: resolve the bearer token into an Identity.

    Raises Unauthorized (401) when the header is missing or the token is rejected.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing authorization header.")
    return await identity_provider.resolve(credentials.credentials)
