"""Payment ORM model: money received from tenants.

Only PAID payments of type UTILITIES count as advance payments when a settlement
nets out what a tenant already prepaid.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class PaymentType(str, Enum):
    """What a tenant payment was for."""

    RENT = "rent"
    UTILITIES = "utilities"
    OTHER = "other"


class PaymentStatus(str, Enum):
    """Payment confirmation state."""

    PENDING = "pending"
    PAID = "paid"


class Payment(Base, BaseModel):
    """Tenant payment record."""

    __tablename__ = "payments"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(PaymentType),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_payment_tenant_type_date", "tenant_id", "payment_type", "paid_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, tenant_id={self.tenant_id}, type={self.payment_type}, "
            f"status={self.status}, amount={self.amount}, paid_date={self.paid_date})>"
        )


__all__ = ["Payment", "PaymentStatus", "PaymentType"]
