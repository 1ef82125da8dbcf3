"""Audit log model: who changed which meter, rate or settlement, and how."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class AuditEntity(str, Enum):
    """Kinds of records whose changes are audited."""

    METER = "meter"
    UTILITY_RATE = "utility_rate"
    SETTLEMENT = "settlement"
    SETTLEMENT_SHARE = "settlement_share"


class AuditAction(str, Enum):
    """Audited operations."""

    CREATE = "create"
    CALCULATE = "calculate"
    ADJUST = "adjust"
    DELETE = "delete"
    EXCHANGE = "exchange"
    FINALIZE = "finalize"
    VOID = "void"


class AuditLog(Base, BaseModel):
    """One audited change.

    entity_type and action hold AuditEntity / AuditAction values as plain strings.
    actor_id is the owner identifier handed in by the caller; there is no users
    table to reference.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[int | None] = mapped_column(nullable=True)

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Snapshot of what changed, e.g. {"status": "finalized", "ledger_entries": [4, 5]}."""

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, {self.entity_type}#{self.entity_id} {self.action}, "
            f"actor_id={self.actor_id})>"
        )


__all__ = ["AuditAction", "AuditEntity", "AuditLog"]
