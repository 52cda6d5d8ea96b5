import logging

from sqlalchemy.ext.asyncio import AsyncSession

from sweepstakes.core.time import utcnow
from sweepstakes.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def log_action(
    session: AsyncSession, *, actor: str, action: str, payload: dict
) -> AuditLog:
    """Stage an audit record in the caller's transaction; it lands or rolls back with the change."""
    record = AuditLog(actor=actor or "unknown", action=action, payload=payload, created_at=utcnow())
    session.add(record)
    logger.info("Audit %s by %s: %s", action, record.actor, payload)
    return record
