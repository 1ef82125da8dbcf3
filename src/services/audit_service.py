"""Audit trail for meter, rate and settlement changes."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction, AuditEntity, AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Write and read audit log entries.

    Entries are added to the caller's session without committing, so an audit
    row is stored exactly when the change it describes is.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: AuditEntity,
        entity_id: int,
        action: AuditAction,
        actor_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Add an audit entry for a change.

        Args:
            db: Database session
            entity_type: Kind of record changed
            entity_id: Primary key of the record
            action: Operation performed
            actor_id: Owner who performed the operation
            changes: JSON-serializable snapshot of the change

        Returns:
            The pending AuditLog row

        Raises:
            ValueError: entity_type or action is not a known AuditEntity / AuditAction
        """
        audit = AuditLog(
            entity_type=AuditEntity(entity_type).value,
            entity_id=entity_id,
            action=AuditAction(action).value,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        logger.debug("Audit %s %s#%s by %s", audit.action, audit.entity_type, entity_id, actor_id)
        return audit

    @staticmethod
    def history(db: Session, entity_type: AuditEntity, entity_id: int) -> list[AuditLog]:
        """All audit entries of one record, oldest first."""
        stmt = (
            select(AuditLog)
            .where(
                AuditLog.entity_type == AuditEntity(entity_type).value,
                AuditLog.entity_id == entity_id,
            )
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(db.execute(stmt).scalars().all())


__all__ = ["AuditService"]
