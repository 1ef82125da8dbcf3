"""Settlement lifecycle: drafts, stored calculations, finalization and voiding.

State machine of ``UtilitySettlement.status``::

    DRAFT / CALCULATED  ->  FINALIZED  ->  VOIDED

DRAFT and CALCULATED are editable. Finalizing posts every share to the tenant
ledger; voiding posts compensating ADJUSTMENT entries and never edits or deletes
earlier ledger rows. Every write runs as one transaction (``atomic``).

Finalize and void report a missing settlement, another owner's settlement and
a settlement in the wrong status with the same NotFoundError; the error
does not tell a caller which settlements exist.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction, AuditEntity
from src.models.property import Property
from src.models.settlement import (
    BillingApproach,
    SettlementItem,
    SettlementShare,
    SettlementStatus,
    UtilitySettlement,
)
from src.models.tenant_ledger import LedgerEntryType, TenantLedger
from src.schemas.settlement import CalculateSettlementRequest
from src.services.audit_service import AuditService
from src.services.db import atomic
from src.services.errors import InvalidStateError, NotFoundError, ValidationError
from src.services.ledger_service import LedgerService
from src.services.locale_service import format_period_label
from src.services.settlement_calculator import SettlementCalculator
from src.services.smart_split import quantize_money

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (SettlementStatus.DRAFT, SettlementStatus.CALCULATED)

SETTLEMENT_NOT_FOUND = "Settlement not found"


@dataclass
class FinalizeResult:
    """Finalized settlement and the ledger entries posted for it."""

    settlement: UtilitySettlement
    ledger_entries: list[TenantLedger] = field(default_factory=list)


@dataclass
class VoidResult:
    """Voided settlement and its compensating ledger entries."""

    settlement: UtilitySettlement
    ledger_entries: list[TenantLedger] = field(default_factory=list)


def charge_description(settlement: UtilitySettlement, locale: str | None = None) -> str:
    """Ledger description of a settlement charge."""
    if settlement.title:
        return f"Utility settlement: {settlement.title}"
    label = format_period_label(settlement.period_start, settlement.period_end, locale=locale)
    return f"Utility settlement for {label}"


def advances_description(settlement: UtilitySettlement, locale: str | None = None) -> str:
    """Ledger description of advances netted against a charge."""
    label = format_period_label(settlement.period_start, settlement.period_end, locale=locale)
    return f"Utility advances for {label}"


class SettlementService:
    """Service for the utility settlement lifecycle."""

    def __init__(self, db: Session, locale: str | None = None):
        """Initialize settlement service.

        Args:
            db: SQLAlchemy database session
            locale: Babel locale for ledger descriptions (default: configured LOCALE)
        """
        self.db = db
        self.locale = locale
        self.ledger = LedgerService(db)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_settlement(self, settlement_id: int, owner_id: int) -> UtilitySettlement:
        """Get a settlement on one of the owner's properties.

        Raises:
            NotFoundError: Settlement missing or owned by someone else
        """
        return self._get_owned_settlement(settlement_id, owner_id)

    def list_settlements(
        self,
        owner_id: int,
        property_id: int | None = None,
        status: SettlementStatus | None = None,
    ) -> list[UtilitySettlement]:
        """List the owner's settlements, latest period first."""
        stmt = (
            select(UtilitySettlement)
            .join(Property, Property.id == UtilitySettlement.property_id)
            .where(Property.owner_id == owner_id)
        )
        if property_id is not None:
            stmt = stmt.where(UtilitySettlement.property_id == property_id)
        if status is not None:
            stmt = stmt.where(UtilitySettlement.status == status)
        stmt = stmt.order_by(desc(UtilitySettlement.period_start), desc(UtilitySettlement.id))
        return list(self.db.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def create_settlement(
        self,
        owner_id: int,
        property_id: int,
        period_start: date,
        period_end: date,
        approach: BillingApproach = BillingApproach.COST_ONLY,
        title: str | None = None,
        notes: str | None = None,
    ) -> UtilitySettlement:
        """Create an empty DRAFT settlement for a period.

        Raises:
            NotFoundError: Property missing or owned by someone else
            ValidationError: period_end before period_start
        """
        if period_end < period_start:
            raise ValidationError(
                f"period_end ({period_end}) must not be before period_start ({period_start})"
            )

        with atomic(self.db):
            property_obj = self.db.execute(
                select(Property).where(Property.id == property_id, Property.owner_id == owner_id)
            ).scalar_one_or_none()
            if property_obj is None:
                raise NotFoundError("Property not found")

            settlement = UtilitySettlement(
                property_id=property_id,
                period_start=period_start,
                period_end=period_end,
                approach=approach,
                status=SettlementStatus.DRAFT,
                title=title,
                notes=notes,
                total_amount=Decimal("0.00"),
            )
            self.db.add(settlement)
            self.db.flush()

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT,
                entity_id=settlement.id,
                action=AuditAction.CREATE,
                actor_id=owner_id,
                changes={
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                    "approach": approach.value,
                },
            )

        logger.info(
            f"Created settlement {settlement.id} for property {property_id} "
            f"({period_start}..{period_end}, {approach.value})"
        )
        return settlement

    def calculate_settlement(
        self, settlement_id: int, owner_id: int
    ) -> tuple[UtilitySettlement, list[str]]:
        """Run the calculator and store its items and shares on the settlement.

        A previous calculation is replaced, manual share adjustments included.

        Returns:
            Tuple of (settlement in CALCULATED status, calculation warnings)

        Raises:
            NotFoundError: Settlement missing or owned by someone else
            InvalidStateError: Settlement already finalized or voided
        """
        with atomic(self.db):
            settlement = self._get_owned_settlement(settlement_id, owner_id, for_update=True)
            self._require_editable(settlement, "recalculate")

            request = CalculateSettlementRequest(
                property_id=settlement.property_id,
                period_start=settlement.period_start,
                period_end=settlement.period_end,
                approach=settlement.approach,
            )
            calculation = SettlementCalculator(self.db).calculate(request)

            settlement.items.clear()
            settlement.shares.clear()
            self.db.flush()

            for item in calculation.items:
                settlement.items.append(
                    SettlementItem(
                        meter_id=item.meter_id,
                        fixed_utility_id=item.fixed_utility_id,
                        label=item.label,
                        unit=item.unit,
                        prev_reading=item.prev_reading,
                        curr_reading=item.curr_reading,
                        consumption=item.consumption,
                        snapshot_rate=item.rate,
                        period_cost=item.period_cost,
                        total_cost=item.total_cost,
                        split_method=item.split_method,
                    )
                )

            for share in calculation.shares:
                advances_paid = share.advances_paid or Decimal("0.00")
                settlement.shares.append(
                    SettlementShare(
                        tenant_id=share.tenant_id,
                        active_days=share.active_days,
                        total_days=share.total_days,
                        share_ratio=share.share_ratio,
                        calculated_amount=share.amount,
                        final_amount=share.amount,
                        advances_paid=advances_paid,
                        balance_due=(
                            share.balance_due
                            if share.balance_due is not None
                            else quantize_money(share.amount - advances_paid)
                        ),
                    )
                )

            settlement.total_amount = calculation.total_amount
            settlement.status = SettlementStatus.CALCULATED
            self.db.flush()

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT,
                entity_id=settlement.id,
                action=AuditAction.CALCULATE,
                actor_id=owner_id,
                changes={
                    "total_amount": str(calculation.total_amount),
                    "items": len(calculation.items),
                    "shares": len(calculation.shares),
                    "warnings": calculation.warnings,
                },
            )

        logger.info(
            f"Calculated settlement {settlement_id}: total={settlement.total_amount}, "
            f"shares={len(settlement.shares)}, warnings={len(calculation.warnings)}"
        )
        return settlement, calculation.warnings

    def adjust_share(
        self,
        settlement_id: int,
        share_id: int,
        owner_id: int,
        adjusted_amount: Decimal | None = None,
        owner_notes: str | None = None,
    ) -> SettlementShare:
        """Override a tenant's amount before finalization.

        Passing ``adjusted_amount=None`` resets the share to its calculated
        amount. balance_due follows the new final amount.

        Raises:
            NotFoundError: Settlement or share missing, or settlement not owned
            InvalidStateError: Settlement already finalized or voided
            ValidationError: Negative adjusted amount
        """
        if adjusted_amount is not None and adjusted_amount < 0:
            raise ValidationError("Adjusted amount must not be negative")

        with atomic(self.db):
            settlement = self._get_owned_settlement(settlement_id, owner_id, for_update=True)
            self._require_editable(settlement, "adjust")

            share = next((s for s in settlement.shares if s.id == share_id), None)
            if share is None:
                raise NotFoundError("Share not found in this settlement")

            previous_amount = share.final_amount
            if adjusted_amount is None:
                share.adjusted_amount = None
                share.final_amount = share.calculated_amount
            else:
                share.adjusted_amount = quantize_money(adjusted_amount)
                share.final_amount = share.adjusted_amount
            share.balance_due = quantize_money(share.final_amount - share.advances_paid)
            if owner_notes is not None:
                share.owner_notes = owner_notes

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT_SHARE,
                entity_id=share.id,
                action=AuditAction.ADJUST,
                actor_id=owner_id,
                changes={"from": str(previous_amount), "to": str(share.final_amount)},
            )

        logger.info(
            f"Adjusted share {share_id} of settlement {settlement_id}: "
            f"{previous_amount} -> {share.final_amount}"
        )
        return share

    def update_settlement(
        self,
        settlement_id: int,
        owner_id: int,
        title: str | None = None,
        notes: str | None = None,
    ) -> UtilitySettlement:
        """Update title and notes of an editable settlement (None keeps the value).

        Raises:
            NotFoundError: Settlement missing or owned by someone else
            InvalidStateError: Settlement already finalized or voided
        """
        with atomic(self.db):
            settlement = self._get_owned_settlement(settlement_id, owner_id, for_update=True)
            self._require_editable(settlement, "update")
            if title is not None:
                settlement.title = title
            if notes is not None:
                settlement.notes = notes

        return settlement

    def delete_settlement(self, settlement_id: int, owner_id: int) -> None:
        """Delete an editable settlement with its items and shares.

        A finalized settlement has ledger entries and can only be voided.

        Raises:
            NotFoundError: Settlement missing or owned by someone else
            InvalidStateError: Settlement already finalized or voided
        """
        with atomic(self.db):
            settlement = self._get_owned_settlement(settlement_id, owner_id, for_update=True)
            self._require_editable(settlement, "delete")
            self.db.delete(settlement)

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT,
                entity_id=settlement_id,
                action=AuditAction.DELETE,
                actor_id=owner_id,
            )

        logger.info(f"Deleted settlement {settlement_id}")

    # ------------------------------------------------------------------
    # Finalize / void
    # ------------------------------------------------------------------

    def finalize_settlement(self, settlement_id: int, owner_id: int) -> FinalizeResult:
        """Post a settlement to the tenant ledger and lock it.

        For every share, in share order: a CHARGE of final_amount on top of the
        tenant's current balance and then, for ADVANCE_PAYMENT settlements with
        advances, an ADVANCE_PAYMENT entry of -advances_paid.

        Raises:
            NotFoundError: Settlement missing, not owned, or not DRAFT/CALCULATED
            ValidationError: Settlement has no shares
        """
        with atomic(self.db):
            settlement = self._get_owned_settlement(
                settlement_id, owner_id, statuses=EDITABLE_STATUSES, for_update=True
            )
            if not settlement.shares:
                raise ValidationError("Settlement has no tenant shares to finalize")

            settlement.status = SettlementStatus.FINALIZED
            settlement.finalized_at = datetime.now(timezone.utc)

            entries = []
            for share in settlement.shares:
                entries.append(
                    self.ledger.append_entry(
                        tenant_id=share.tenant_id,
                        property_id=settlement.property_id,
                        entry_type=LedgerEntryType.CHARGE,
                        amount=share.final_amount,
                        description=charge_description(settlement, self.locale),
                        settlement_id=settlement.id,
                    )
                )

                if settlement.approach == BillingApproach.ADVANCE_PAYMENT and share.advances_paid > 0:
                    entries.append(
                        self.ledger.append_entry(
                            tenant_id=share.tenant_id,
                            property_id=settlement.property_id,
                            entry_type=LedgerEntryType.ADVANCE_PAYMENT,
                            amount=-share.advances_paid,
                            description=advances_description(settlement, self.locale),
                            settlement_id=settlement.id,
                        )
                    )
                    share.balance_due = quantize_money(share.final_amount - share.advances_paid)

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT,
                entity_id=settlement.id,
                action=AuditAction.FINALIZE,
                actor_id=owner_id,
                changes={
                    "total_amount": str(settlement.total_amount),
                    "ledger_entries": [entry.id for entry in entries],
                },
            )

        logger.info(
            f"Finalized settlement {settlement_id}: {len(settlement.shares)} shares, "
            f"{len(entries)} ledger entries"
        )
        return FinalizeResult(settlement=settlement, ledger_entries=entries)

    def void_settlement(self, settlement_id: int, owner_id: int, reason: str) -> VoidResult:
        """Reverse a finalized settlement with compensating ADJUSTMENT entries.

        Each share gets one ADJUSTMENT of -final_amount against the tenant's
        balance as it stands now. Earlier ledger rows are left untouched.

        Raises:
            NotFoundError: Settlement missing, not owned, or not FINALIZED
            ValidationError: Empty reason
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void a settlement")

        with atomic(self.db):
            settlement = self._get_owned_settlement(
                settlement_id,
                owner_id,
                statuses=(SettlementStatus.FINALIZED,),
                for_update=True,
            )

            entries = [
                self.ledger.append_entry(
                    tenant_id=share.tenant_id,
                    property_id=settlement.property_id,
                    entry_type=LedgerEntryType.ADJUSTMENT,
                    amount=-share.final_amount,
                    description=f"Settlement voided: {reason}",
                    settlement_id=settlement.id,
                )
                for share in settlement.shares
            ]

            settlement.status = SettlementStatus.VOIDED
            settlement.voided_at = datetime.now(timezone.utc)
            settlement.void_reason = reason

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.SETTLEMENT,
                entity_id=settlement.id,
                action=AuditAction.VOID,
                actor_id=owner_id,
                changes={"reason": reason, "ledger_entries": [entry.id for entry in entries]},
            )

        logger.info(f"Voided settlement {settlement_id}: {reason}")
        return VoidResult(settlement=settlement, ledger_entries=entries)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_owned_settlement(
        self,
        settlement_id: int,
        owner_id: int,
        statuses: tuple[SettlementStatus, ...] | None = None,
        for_update: bool = False,
    ) -> UtilitySettlement:
        stmt = (
            select(UtilitySettlement)
            .join(Property, Property.id == UtilitySettlement.property_id)
            .where(UtilitySettlement.id == settlement_id, Property.owner_id == owner_id)
        )
        if statuses is not None:
            stmt = stmt.where(UtilitySettlement.status.in_(statuses))
        if for_update:
            stmt = stmt.with_for_update(of=UtilitySettlement)

        settlement = self.db.execute(stmt).scalar_one_or_none()
        if settlement is None:
            raise NotFoundError(SETTLEMENT_NOT_FOUND)
        return settlement

    @staticmethod
    def _require_editable(settlement: UtilitySettlement, action: str) -> None:
        if settlement.status not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Settlement {settlement.id} is {settlement.status.value}, cannot {action}"
            )


__all__ = [
    "FinalizeResult",
    "SettlementService",
    "VoidResult",
]
