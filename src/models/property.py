"""Property ORM model: the rented unit whose utility costs are settled."""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Property(Base, BaseModel):
    """Model representing a rented property owned by a single owner.

    Ownership is the only authorization fact the settlement engine checks: every
    owner-scoped operation filters on owner_id. The owner identity itself lives in
    an external authentication system, hence the plain integer column.
    """

    __tablename__ = "properties"

    owner_id: Mapped[int] = mapped_column(
        nullable=False,
        comment="Identifier of the owning user (resolved upstream)",
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    address: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Relationships
    tenants: Mapped[list["Tenant"]] = relationship(  # noqa: F821
        "Tenant",
        back_populates="property",
    )
    meters: Mapped[list["Meter"]] = relationship(  # noqa: F821
        "Meter",
        back_populates="property",
    )
    fixed_utilities: Mapped[list["FixedUtility"]] = relationship(  # noqa: F821
        "FixedUtility",
        back_populates="property",
    )

    __table_args__ = (Index("idx_property_owner", "owner_id"),)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, owner_id={self.owner_id}, name={self.name!r})>"


__all__ = ["Property"]
