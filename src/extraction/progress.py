"""Redis-backed progress snapshots for in-flight extractions.

Key: "extraction:{file_id}:progress", TTL from settings. One snapshot per
file; each invocation starts a new attempt and progress never moves
backwards within an attempt. Redis failures are logged and never fail the
extraction itself.
"""

from __future__ import annotations

import logging
import uuid

import redis.asyncio as aioredis
from pydantic import BaseModel, Field

from src.config import settings

logger = logging.getLogger(__name__)


class ProgressSnapshot(BaseModel):
    attempt: str
    progress: int = Field(ge=0, le=100)
    message: str


def _progress_key(file_id: object) -> str:
    return f"extraction:{file_id}:progress"


class ProgressTracker:
    """Reads and writes progress snapshots for the status poller."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl_seconds or settings.pipeline.progress_ttl_seconds

    async def start(self, file_id: uuid.UUID, message: str = "Queued for extraction") -> str:
        """Open a new attempt for the file and return its id."""
        attempt = uuid.uuid4().hex
        await self._write(file_id, ProgressSnapshot(attempt=attempt, progress=0, message=message))
        return attempt

    async def advance(self, file_id: uuid.UUID, attempt: str, progress: int, message: str) -> None:
        """Report progress. Lower values than the stored snapshot are ignored."""
        current = await self.read(file_id)
        if current is not None and current.attempt == attempt and current.progress > progress:
            progress = current.progress
        await self._write(
            file_id,
            ProgressSnapshot(attempt=attempt, progress=max(0, min(progress, 100)), message=message),
        )

    async def finish(self, file_id: uuid.UUID, attempt: str) -> None:
        """Drop the snapshot, unless a newer attempt has already replaced it."""
        current = await self.read(file_id)
        if current is not None and current.attempt != attempt:
            return
        try:
            await self._redis.delete(_progress_key(file_id))
        except Exception:
            logger.warning("Failed to clear progress snapshot for file %s", file_id)

    async def read(self, file_id: uuid.UUID) -> ProgressSnapshot | None:
        try:
            raw = await self._redis.get(_progress_key(file_id))
        except Exception:
            logger.warning("Failed to read progress snapshot for file %s", file_id)
            return None
        if not raw:
            return None
        try:
            return ProgressSnapshot.model_validate_json(raw)
        except Exception:
            logger.warning("Discarding malformed progress snapshot for file %s", file_id)
            return None

    async def _write(self, file_id: uuid.UUID, snapshot: ProgressSnapshot) -> None:
        try:
            await self._redis.setex(_progress_key(file_id), self._ttl, snapshot.model_dump_json())
        except Exception:
            logger.warning("Failed to store progress snapshot for file %s", file_id)
