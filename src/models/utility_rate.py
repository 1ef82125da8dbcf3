"""Utility rate history: price per unit versioned by effective date."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel
from src.models.meter import MeterType


class UtilityRate(Base, BaseModel):
    """Rate snapshot for a property and meter type.

    A rate applies on every date in [effective_from, effective_to]; an open-ended
    rate has effective_to = NULL. Keeping the history lets an old settlement be
    recalculated with the price that was valid at its period end.
    """

    __tablename__ = "utility_rates"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    meter_type: Mapped[MeterType] = mapped_column(
        SQLEnum(MeterType),
        nullable=False,
    )
    price_per_unit: Mapped[Decimal] = mapped_column(
        Numeric(10, 4),
        nullable=False,
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    source: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Where the price comes from (tariff name, invoice number)",
    )
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    __table_args__ = (
        Index("idx_rate_lookup", "property_id", "meter_type", "effective_from"),
    )

    def __repr__(self) -> str:
        return (
            f"<UtilityRate(id={self.id}, property_id={self.property_id}, type={self.meter_type}, "
            f"price={self.price_per_unit}, from={self.effective_from}, to={self.effective_to})>"
        )


__all__ = ["UtilityRate"]
