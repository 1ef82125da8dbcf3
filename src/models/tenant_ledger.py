"""Tenant ledger ORM model: append-only running account per tenant and property."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class LedgerEntryType(str, Enum):
    """Kind of ledger posting."""

    CHARGE = "charge"
    """Tenant owes money (positive amount)"""

    ADVANCE_PAYMENT = "advance_payment"
    """Prepaid utility advances credited against a charge (negative amount)"""

    ADJUSTMENT = "adjustment"
    """Correction, e.g. reversal of a voided settlement"""


class TenantLedger(Base, BaseModel):
    """Immutable ledger row.

    Rows are never updated or deleted. balance_after is computed at write time from
    the immediately preceding row for the same tenant and property, so replaying
    rows in (created_at, id) order reproduces every running balance.
    """

    __tablename__ = "tenant_ledger"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
    )
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
    )
    entry_type: Mapped[LedgerEntryType] = mapped_column(
        SQLEnum(LedgerEntryType),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Signed amount: charges positive, credits negative",
    )
    settlement_id: Mapped[int | None] = mapped_column(
        ForeignKey("utility_settlements.id"),
        nullable=True,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Running balance after this entry",
    )

    __table_args__ = (
        Index("idx_ledger_tenant_property_created", "tenant_id", "property_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TenantLedger(id={self.id}, tenant_id={self.tenant_id}, type={self.entry_type}, "
            f"amount={self.amount}, balance_after={self.balance_after})>"
        )


__all__ = ["LedgerEntryType", "TenantLedger"]
