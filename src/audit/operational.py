"""Operational audit subscriber: persists every SystemEvent to audit_log.

Registered as a global subscriber (receives ALL events). Failures are
logged and swallowed: the operational trail must never break a pipeline
stage. The authoritative record of human decisions is the approval audit
table, which is written inside the approval transaction instead.
"""

from __future__ import annotations

import logging

from src.db.engine import async_session_factory
from src.models.audit import AuditLog
from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table."""
    try:
        async with async_session_factory() as db:
            db.add(AuditLog(
                event_type=event.event_type.value,
                company_id=event.company_id,
                subject_id=event.subject_id,
                actor_id=event.actor_id,
                actor_role=event.actor_role,
                data={**event.data, "source_module": event.source_module},
            ))
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (subject=%s)",
            event.event_type.value,
            event.subject_id,
        )
