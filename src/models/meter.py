"""Meter and meter reading ORM models.

A physical meter replacement never edits history: the old meter is archived and
points at its successor through replaced_by_id, forming a forward-only chain.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class MeterType(str, Enum):
    """Utility measured by a meter."""

    ELECTRICITY = "electricity"
    GAS = "gas"
    WATER_COLD = "water_cold"
    WATER_HOT = "water_hot"
    HEATING = "heating"


class MeterStatus(str, Enum):
    """Lifecycle status of a meter."""

    ACTIVE = "active"
    """Installed and accepting readings"""

    ARCHIVED = "archived"
    """Removed from service, see replaced_by_id for the successor"""


class ReadingType(str, Enum):
    """Origin of a meter reading."""

    REGULAR = "regular"
    """Periodic reading taken by owner or tenant"""

    INITIAL = "initial"
    """First reading of a newly installed meter"""

    METER_EXCHANGE = "meter_exchange"
    """Final reading taken on a meter just before it was replaced"""


class Meter(Base, BaseModel):
    """Model representing a physical metering device on a property."""

    __tablename__ = "meters"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    meter_type: Mapped[MeterType] = mapped_column(
        SQLEnum(MeterType),
        nullable=False,
        comment="Utility measured: electricity, gas, water, heating",
    )
    meter_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Unit of measurement (kWh, m3, GJ)",
    )
    price_per_unit: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 4),
        nullable=True,
        comment="Fallback rate when no rate snapshot covers the period",
    )
    status: Mapped[MeterStatus] = mapped_column(
        SQLEnum(MeterStatus),
        nullable=False,
        default=MeterStatus.ACTIVE,
    )
    install_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Self-referential FK to the meter that replaced this one
    replaced_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("meters.id"),
        nullable=True,
        index=True,
        comment="Successor meter (set when archived through an exchange)",
    )
    archive_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    archive_note: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    property: Mapped["Property"] = relationship(  # noqa: F821
        "Property",
        back_populates="meters",
    )
    replaced_by: Mapped[Optional["Meter"]] = relationship(
        "Meter",
        remote_side="Meter.id",
        foreign_keys=[replaced_by_id],
    )
    readings: Mapped[list["MeterReading"]] = relationship(
        "MeterReading",
        back_populates="meter",
        order_by="MeterReading.reading_date",
    )

    __table_args__ = (Index("idx_meter_property_status", "property_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<Meter(id={self.id}, property_id={self.property_id}, type={self.meter_type}, "
            f"number={self.meter_number!r}, status={self.status}, replaced_by_id={self.replaced_by_id})>"
        )


class MeterReading(Base, BaseModel):
    """Immutable meter observation.

    Readings are created once and never mutated. Consumption is always the
    difference between two readings of the same meter.
    """

    __tablename__ = "meter_readings"

    meter_id: Mapped[int] = mapped_column(
        ForeignKey("meters.id"),
        nullable=False,
        index=True,
    )
    value: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=3),
        nullable=False,
    )
    reading_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    reading_type: Mapped[ReadingType] = mapped_column(
        SQLEnum(ReadingType),
        nullable=False,
        default=ReadingType.REGULAR,
    )
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    # Relationships
    meter: Mapped["Meter"] = relationship("Meter", back_populates="readings")

    __table_args__ = (Index("idx_reading_meter_date", "meter_id", "reading_date"),)

    def __repr__(self) -> str:
        return (
            f"<MeterReading(id={self.id}, meter_id={self.meter_id}, value={self.value}, "
            f"date={self.reading_date}, type={self.reading_type})>"
        )


__all__ = ["Meter", "MeterReading", "MeterStatus", "MeterType", "ReadingType"]
