"""Utility rate history: lookup of the price valid on a date and tariff changes."""

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import desc, or_, select, update
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction, AuditEntity
from src.models.meter import Meter, MeterStatus, MeterType
from src.models.property import Property
from src.models.utility_rate import UtilityRate
from src.services.audit_service import AuditService
from src.services.db import atomic
from src.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class RateService:
    """Service for versioned utility prices."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def get_effective_rate(
        self,
        property_id: int,
        meter_type: MeterType,
        at_date: date,
    ) -> UtilityRate | None:
        """Get the rate valid for a property and meter type on a date.

        Args:
            property_id: Property ID
            meter_type: Utility type
            at_date: Date the price must be valid on

        Returns:
            UtilityRate with the latest effective_from covering at_date, or None
        """
        stmt = (
            select(UtilityRate)
            .where(
                UtilityRate.property_id == property_id,
                UtilityRate.meter_type == meter_type,
                UtilityRate.effective_from <= at_date,
                or_(UtilityRate.effective_to.is_(None), UtilityRate.effective_to >= at_date),
            )
            .order_by(desc(UtilityRate.effective_from), desc(UtilityRate.id))
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_rates(self, property_id: int, meter_type: MeterType | None = None) -> list[UtilityRate]:
        """List rate history, grouped by meter type, newest first."""
        stmt = select(UtilityRate).where(UtilityRate.property_id == property_id)
        if meter_type is not None:
            stmt = stmt.where(UtilityRate.meter_type == meter_type)
        stmt = stmt.order_by(UtilityRate.meter_type, desc(UtilityRate.effective_from))
        return list(self.db.execute(stmt).scalars().all())

    def add_rate(
        self,
        property_id: int,
        owner_id: int,
        meter_type: MeterType,
        price_per_unit: Decimal,
        effective_from: date,
        effective_to: date | None = None,
        source: str | None = None,
        notes: str | None = None,
    ) -> UtilityRate:
        """Add a new rate and close the currently open one.

        The open rate (effective_to NULL) of the same meter type ends the day
        before the new rate starts. Active meters of that type get the new price
        as their fallback price_per_unit.

        Raises:
            NotFoundError: Property missing or owned by someone else
            ValidationError: Non-positive price or inverted date range
        """
        if price_per_unit <= 0:
            raise ValidationError("Price per unit must be positive")
        if effective_to is not None and effective_to < effective_from:
            raise ValidationError(
                f"effective_to ({effective_to}) must not be before effective_from ({effective_from})"
            )

        with atomic(self.db):
            property_obj = self.db.execute(
                select(Property).where(Property.id == property_id, Property.owner_id == owner_id)
            ).scalar_one_or_none()
            if property_obj is None:
                raise NotFoundError("Property not found")

            previous = self.db.execute(
                select(UtilityRate)
                .where(
                    UtilityRate.property_id == property_id,
                    UtilityRate.meter_type == meter_type,
                    UtilityRate.effective_to.is_(None),
                )
                .order_by(desc(UtilityRate.effective_from))
                .limit(1)
            ).scalar_one_or_none()
            if previous is not None:
                if previous.effective_from >= effective_from:
                    raise ValidationError(
                        f"New rate must start after the current one ({previous.effective_from})"
                    )
                previous.effective_to = effective_from - timedelta(days=1)

            self.db.execute(
                update(Meter)
                .where(
                    Meter.property_id == property_id,
                    Meter.meter_type == meter_type,
                    Meter.status == MeterStatus.ACTIVE,
                )
                .values(price_per_unit=price_per_unit)
            )

            rate = UtilityRate(
                property_id=property_id,
                meter_type=meter_type,
                price_per_unit=price_per_unit,
                effective_from=effective_from,
                effective_to=effective_to,
                source=source,
                notes=notes,
            )
            self.db.add(rate)
            self.db.flush()

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.UTILITY_RATE,
                entity_id=rate.id,
                action=AuditAction.CREATE,
                actor_id=owner_id,
                changes={
                    "meter_type": meter_type.value,
                    "price_per_unit": str(price_per_unit),
                    "effective_from": effective_from.isoformat(),
                    "closed_rate_id": previous.id if previous else None,
                },
            )

        logger.info(
            "Added %s rate %s for property %s from %s",
            meter_type.value,
            price_per_unit,
            property_id,
            effective_from,
        )
        return rate


__all__ = ["RateService"]
