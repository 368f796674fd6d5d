"""Upload boundary: validate, store, and register an uploaded document."""

from __future__ import annotations

import logging
import mimetypes
import uuid
from pathlib import PurePath

from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.events import emit
from src.config import settings
from src.errors import UploadRejected
from src.models.enums import FileStatus
from src.models.uploaded_file import UploadedFile
from src.schemas.approval import Identity
from src.schemas.events import EventType, SystemEvent
from src.storage.gateway import ObjectStoreGateway

logger = logging.getLogger(__name__)


def check_upload(filename: str, mime_type: str, size_bytes: int) -> None:
    """Raise UploadRejected for unsupported types or oversize payloads."""
    allowed = settings.pipeline.allowed_mime_types
    if mime_type not in allowed:
        raise UploadRejected(
            f"Unsupported file type '{mime_type}'. Allowed: PDF, CSV, XLS, XLSX, TXT.",
            details=[{"field": "mime_type", "value": mime_type}],
        )
    limit = settings.pipeline.max_upload_bytes
    if size_bytes > limit:
        raise UploadRejected(
            f"File '{filename}' is too large ({size_bytes} bytes, limit {limit}).",
            details=[{"field": "size_bytes", "value": size_bytes, "limit": limit}],
        )
    if size_bytes == 0:
        raise UploadRejected(f"File '{filename}' is empty.")


def storage_path_for(company_id: uuid.UUID, filename: str, mime_type: str) -> str:
    """Tenant-prefixed, collision-free object path."""
    ext = PurePath(filename).suffix.lower() or (mimetypes.guess_extension(mime_type) or "")
    return f"{company_id}/{uuid.uuid4()}{ext}"


async def upload_document(
    db: AsyncSession,
    gateway: ObjectStoreGateway,
    identity: Identity,
    filename: str,
    mime_type: str,
    data: bytes,
) -> UploadedFile:
    """Validate and store a document, then insert its file record.

    Validation happens before any storage write. If the record cannot be
    inserted, the stored object is removed again.
    """
    try:
        check_upload(filename, mime_type, len(data))
    except UploadRejected as exc:
        await emit(SystemEvent(
            event_type=EventType.UPLOAD_REJECTED,
            company_id=identity.company_id,
            actor_id=str(identity.user_id),
            data={"filename": filename, "mime_type": mime_type, "size_bytes": len(data), "reason": exc.user_message},
            source_module="extraction.upload",
        ))
        logger.info("Upload rejected for %s: %s", filename, exc.user_message)
        raise

    path = storage_path_for(identity.company_id, filename, mime_type)
    await gateway.upload(path, data, mime_type)

    record = UploadedFile(
        company_id=identity.company_id,
        uploaded_by=identity.user_id,
        original_filename=filename,
        storage_path=path,
        mime_type=mime_type,
        size_bytes=len(data),
        status=FileStatus.UPLOADED.value,
    )
    try:
        db.add(record)
        await db.flush()
    except Exception:
        logger.exception("File record insert failed, removing stored object %s", path)
        try:
            await gateway.remove([path])
        except Exception:
            logger.exception("Orphaned stored object %s", path)
        raise

    await emit(SystemEvent(
        event_type=EventType.FILE_UPLOADED,
        company_id=identity.company_id,
        subject_id=record.id,
        actor_id=str(identity.user_id),
        data={"filename": filename, "mime_type": mime_type, "size_bytes": len(data)},
        source_module="extraction.upload",
    ))
    logger.info("Uploaded file %s (%s, %d bytes)", record.id, mime_type, len(data))
    return record
