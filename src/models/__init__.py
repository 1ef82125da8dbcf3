"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from src.models.audit_log import AuditAction, AuditEntity, AuditLog  # noqa: E402
from src.models.fixed_utility import FixedUtility, SplitMethod  # noqa: E402
from src.models.meter import Meter, MeterReading, MeterStatus, MeterType, ReadingType  # noqa: E402
from src.models.payment import Payment, PaymentStatus, PaymentType  # noqa: E402
from src.models.property import Property  # noqa: E402
from src.models.settlement import (  # noqa: E402
    BillingApproach,
    SettlementItem,
    SettlementShare,
    SettlementStatus,
    UtilitySettlement,
)
from src.models.tenant import Tenant  # noqa: E402
from src.models.tenant_ledger import LedgerEntryType, TenantLedger  # noqa: E402
from src.models.utility_rate import UtilityRate  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AuditAction",
    "AuditEntity",
    "AuditLog",
    "BillingApproach",
    "FixedUtility",
    "LedgerEntryType",
    "Meter",
    "MeterReading",
    "MeterStatus",
    "MeterType",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "Property",
    "ReadingType",
    "SettlementItem",
    "SettlementShare",
    "SettlementStatus",
    "SplitMethod",
    "Tenant",
    "TenantLedger",
    "UtilityRate",
    "UtilitySettlement",
]
