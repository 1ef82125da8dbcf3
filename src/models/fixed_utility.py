"""Fixed (non-metered) recurring utility cost lines."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class SplitMethod(str, Enum):
    """How a shared cost is divided among tenants.

    EQUAL and BY_PERSONS compute the same 1/N split today. They are kept apart on
    purpose: EQUAL bills per lease, BY_PERSONS bills per occupant, and the two
    policies are expected to diverge once headcount data is weighted.
    """

    BY_DAYS = "by_days"
    """Proportional to days occupied within the period (default)"""

    BY_PERSONS = "by_persons"
    """One equal part per occupant"""

    EQUAL = "equal"
    """One equal part per lease"""

    MANUAL = "manual"
    """Owner adjusts shares by hand after calculation"""


class FixedUtility(Base, BaseModel):
    """Recurring flat cost on a property (internet, garbage, admin fee)."""

    __tablename__ = "fixed_utilities"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    period_cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Cost per settlement period",
    )
    is_per_person: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Multiply period_cost by the number of active tenants",
    )
    split_method: Mapped[SplitMethod] = mapped_column(
        SQLEnum(SplitMethod),
        nullable=False,
        default=SplitMethod.BY_DAYS,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    # Relationships
    property: Mapped["Property"] = relationship(  # noqa: F821
        "Property",
        back_populates="fixed_utilities",
    )

    def __repr__(self) -> str:
        return (
            f"<FixedUtility(id={self.id}, property_id={self.property_id}, name={self.name!r}, "
            f"period_cost={self.period_cost}, is_per_person={self.is_per_person})>"
        )


__all__ = ["FixedUtility", "SplitMethod"]
