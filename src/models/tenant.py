"""Tenant ORM model with move-in/move-out dates used for proration."""

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Tenant(Base, BaseModel):
    """Model representing a tenant occupying a property.

    The settlement engine reads tenants only; the occupancy interval
    [move_in_date, move_out_date] (both inclusive, move_out_date null while still
    living there) drives the day-weighted split.
    """

    __tablename__ = "tenants"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    move_in_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="First day of occupancy (inclusive)",
    )
    move_out_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="Last day of occupancy (inclusive), null while occupying",
    )

    # Relationships
    property: Mapped["Property"] = relationship(  # noqa: F821
        "Property",
        back_populates="tenants",
    )

    __table_args__ = (Index("idx_tenant_property_dates", "property_id", "move_in_date", "move_out_date"),)

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, property_id={self.property_id}, "
            f"move_in_date={self.move_in_date}, move_out_date={self.move_out_date})>"
        )


__all__ = ["Tenant"]
