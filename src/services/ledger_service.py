"""Tenant ledger service: append-only running balance per tenant and property.

Every entry stores balance_after = previous balance_after + amount. Entries are
never updated or deleted; a correction is a new ADJUSTMENT entry. Callers that
post several entries must do so inside one transaction (see ``atomic``).

Before reading the previous balance, append_entry takes a row lock on the
tenant (SELECT ... FOR UPDATE). Two transactions posting to the same tenant,
for example finalizations of two different settlements, therefore run one
after the other: the second reads the balance_after written by the first.
The lock is held until the caller commits or rolls back. SQLite has no row
locks and serializes writers on its own.
"""

import logging
from decimal import Decimal
from typing import Tuple

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.models.tenant import Tenant
from src.models.tenant_ledger import LedgerEntryType, TenantLedger
from src.services.smart_split import quantize_money

logger = logging.getLogger(__name__)


def tenant_lock_statement(tenant_id: int):
    """SELECT ... FOR UPDATE on a tenant, serializing postings to its ledger."""
    return select(Tenant.id).where(Tenant.id == tenant_id).with_for_update()


class LedgerService:
    """Read and append tenant ledger entries."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def get_last_entry(self, tenant_id: int, property_id: int) -> TenantLedger | None:
        """Most recent entry for a tenant and property, or None for an empty ledger."""
        stmt = (
            select(TenantLedger)
            .where(TenantLedger.tenant_id == tenant_id, TenantLedger.property_id == property_id)
            .order_by(desc(TenantLedger.created_at), desc(TenantLedger.id))
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_tenant(self, tenant_id: int) -> None:
        """Lock the tenant row until the end of the current transaction."""
        self.db.execute(tenant_lock_statement(tenant_id))

    def get_current_balance(self, tenant_id: int, property_id: int) -> Decimal:
        """Current running balance (positive = tenant owes money)."""
        last = self.get_last_entry(tenant_id, property_id)
        if last is None:
            return Decimal("0.00")
        return quantize_money(last.balance_after)

    def append_entry(
        self,
        tenant_id: int,
        property_id: int,
        entry_type: LedgerEntryType,
        amount: Decimal,
        description: str | None = None,
        settlement_id: int | None = None,
    ) -> TenantLedger:
        """Append an entry on top of the tenant's latest balance.

        Does not commit: the caller owns the transaction.

        Args:
            tenant_id: Tenant ID
            property_id: Property ID
            entry_type: CHARGE, ADVANCE_PAYMENT or ADJUSTMENT
            amount: Signed amount (charges positive, credits negative)
            description: Human readable description
            settlement_id: Settlement that caused the entry, if any

        Returns:
            The new TenantLedger row (flushed, with ID)
        """
        self.lock_tenant(tenant_id)
        amount = quantize_money(amount)
        previous_balance = self.get_current_balance(tenant_id, property_id)
        entry = TenantLedger(
            tenant_id=tenant_id,
            property_id=property_id,
            entry_type=entry_type,
            amount=amount,
            settlement_id=settlement_id,
            description=description,
            balance_after=quantize_money(previous_balance + amount),
        )
        self.db.add(entry)
        self.db.flush()
        logger.debug(
            "Ledger %s tenant=%s property=%s amount=%s balance %s -> %s",
            entry_type.value,
            tenant_id,
            property_id,
            amount,
            previous_balance,
            entry.balance_after,
        )
        return entry

    def get_history(
        self,
        tenant_id: int,
        property_id: int,
        limit: int | None = None,
    ) -> list[TenantLedger]:
        """Ledger entries for a tenant and property, oldest first.

        Args:
            limit: Return only the most recent ``limit`` entries (still oldest first)
        """
        stmt = select(TenantLedger).where(
            TenantLedger.tenant_id == tenant_id, TenantLedger.property_id == property_id
        )
        if limit is not None:
            stmt = stmt.order_by(desc(TenantLedger.created_at), desc(TenantLedger.id)).limit(limit)
            return list(reversed(self.db.execute(stmt).scalars().all()))

        stmt = stmt.order_by(TenantLedger.created_at, TenantLedger.id)
        return list(self.db.execute(stmt).scalars().all())

    def get_settlement_entries(self, settlement_id: int) -> list[TenantLedger]:
        """All entries posted for a settlement, in posting order."""
        stmt = (
            select(TenantLedger)
            .where(TenantLedger.settlement_id == settlement_id)
            .order_by(TenantLedger.created_at, TenantLedger.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def verify_running_balance(self, tenant_id: int, property_id: int) -> Tuple[bool, str, int]:
        """Replay a tenant's ledger and check every balance_after.

        Returns:
            (all_valid: bool, message: str, entries_checked: int)
        """
        entries = self.get_history(tenant_id, property_id)
        if not entries:
            return True, "Ledger is empty (no entries)", 0

        balance = Decimal("0.00")
        checked = 0
        for entry in entries:
            balance = quantize_money(balance + entry.amount)
            if balance != quantize_money(entry.balance_after):
                return (
                    False,
                    f"Balance mismatch at ledger id={entry.id}: "
                    f"stored={entry.balance_after}, replayed={balance}",
                    checked,
                )
            checked += 1

        return True, "Running balance verification passed", checked


__all__ = ["LedgerService", "tenant_lock_statement"]
