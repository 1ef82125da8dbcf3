"""Utility settlement ORM models: settlement header, cost items and tenant shares."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel
from src.models.fixed_utility import SplitMethod


class SettlementStatus(str, Enum):
    """Settlement lifecycle: DRAFT/CALCULATED -> FINALIZED -> VOIDED."""

    DRAFT = "draft"
    """Header created, no calculation stored yet"""

    CALCULATED = "calculated"
    """Items and shares stored, still editable"""

    FINALIZED = "finalized"
    """Posted to the tenant ledger, immutable"""

    VOIDED = "voided"
    """Reversed with compensating ledger entries (terminal)"""


class BillingApproach(str, Enum):
    """Whether prepaid utility advances are netted against the charge."""

    COST_ONLY = "cost_only"
    ADVANCE_PAYMENT = "advance_payment"


class UtilitySettlement(Base, BaseModel):
    """One settlement run for a property and period."""

    __tablename__ = "utility_settlements"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    approach: Mapped[BillingApproach] = mapped_column(
        SQLEnum(BillingApproach),
        nullable=False,
        default=BillingApproach.COST_ONLY,
    )
    status: Mapped[SettlementStatus] = mapped_column(
        SQLEnum(SettlementStatus),
        nullable=False,
        default=SettlementStatus.DRAFT,
        index=True,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    property: Mapped["Property"] = relationship("Property")  # noqa: F821
    items: Mapped[list["SettlementItem"]] = relationship(
        "SettlementItem",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementItem.id",
    )
    shares: Mapped[list["SettlementShare"]] = relationship(
        "SettlementShare",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementShare.id",
    )

    __table_args__ = (Index("idx_settlement_property_period", "property_id", "period_start"),)

    def __repr__(self) -> str:
        return (
            f"<UtilitySettlement(id={self.id}, property_id={self.property_id}, "
            f"period={self.period_start}..{self.period_end}, status={self.status})>"
        )


class SettlementItem(Base, BaseModel):
    """One cost line of a settlement: a metered utility or a fixed utility."""

    __tablename__ = "settlement_items"

    settlement_id: Mapped[int] = mapped_column(
        ForeignKey("utility_settlements.id"),
        nullable=False,
        index=True,
    )
    meter_id: Mapped[int | None] = mapped_column(ForeignKey("meters.id"), nullable=True)
    fixed_utility_id: Mapped[int | None] = mapped_column(
        ForeignKey("fixed_utilities.id"), nullable=True
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    prev_reading: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    curr_reading: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    consumption: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    snapshot_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 4),
        nullable=True,
        comment="Rate used at calculation time",
    )
    period_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    split_method: Mapped[SplitMethod] = mapped_column(
        SQLEnum(SplitMethod),
        nullable=False,
        default=SplitMethod.BY_DAYS,
    )

    settlement: Mapped["UtilitySettlement"] = relationship(
        "UtilitySettlement", back_populates="items"
    )

    def __repr__(self) -> str:
        return f"<SettlementItem(id={self.id}, label={self.label!r}, total_cost={self.total_cost})>"


class SettlementShare(Base, BaseModel):
    """A tenant's portion of a settlement."""

    __tablename__ = "settlement_shares"

    settlement_id: Mapped[int] = mapped_column(
        ForeignKey("utility_settlements.id"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    active_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    share_ratio: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    calculated_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    adjusted_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Owner override of the calculated amount",
    )
    final_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Amount charged on finalization (adjusted or calculated)",
    )
    advances_paid: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    balance_due: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    owner_notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    settlement: Mapped["UtilitySettlement"] = relationship(
        "UtilitySettlement", back_populates="shares"
    )

    def __repr__(self) -> str:
        return (
            f"<SettlementShare(id={self.id}, settlement_id={self.settlement_id}, "
            f"tenant_id={self.tenant_id}, final_amount={self.final_amount})>"
        )


__all__ = [
    "BillingApproach",
    "SettlementItem",
    "SettlementShare",
    "SettlementStatus",
    "UtilitySettlement",
]
