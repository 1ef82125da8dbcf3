"""Service for meter readings and physical meter replacement.

A meter exchange archives the old meter and links it to its successor through
replaced_by_id. Consumption over a range that spans an exchange is computed by
walking that chain, so usage is neither lost nor counted twice at the swap.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.models.audit_log import AuditAction, AuditEntity
from src.models.meter import Meter, MeterReading, MeterStatus, ReadingType
from src.models.property import Property
from src.schemas.meter import MeterExchangeRequest
from src.services.audit_service import AuditService
from src.services.db import atomic
from src.services.errors import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from src.services.smart_split import quantize_money

logger = logging.getLogger(__name__)

MAX_READINGS_PAGE = 100


@dataclass
class MeterExchangeResult:
    """Outcome of a meter exchange."""

    old_meter: Meter
    new_meter: Meter
    final_reading_id: int
    initial_reading_id: int


class MeterService:
    """Service for meter readings and meter continuity."""

    def __init__(self, db: Session) -> None:
        """Initialize service with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def get_latest_reading(self, meter_id: int) -> MeterReading | None:
        """Get the most recent reading of a meter (latest date, then latest insert)."""
        stmt = (
            select(MeterReading)
            .where(MeterReading.meter_id == meter_id)
            .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_readings(self, meter_id: int, limit: int = 20) -> list[MeterReading]:
        """Get reading history of a meter, newest first.

        Args:
            meter_id: Meter ID
            limit: Maximum number of readings (capped at 100)
        """
        stmt = (
            select(MeterReading)
            .where(MeterReading.meter_id == meter_id)
            .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
            .limit(min(limit, MAX_READINGS_PAGE))
        )
        return list(self.db.execute(stmt).scalars().all())

    def record_reading(
        self,
        meter_id: int,
        owner_id: int,
        value: Decimal,
        reading_date: date | None = None,
        reading_type: ReadingType = ReadingType.REGULAR,
        notes: str | None = None,
    ) -> tuple[MeterReading, str | None]:
        """Record a new reading on an active meter.

        A value lower than the previous reading is stored anyway (it may be a
        legitimate correction) but a warning is returned for the owner to review.

        Args:
            meter_id: Meter ID
            owner_id: Owner of the meter's property
            value: Displayed meter value
            reading_date: Date of the reading (default: today)
            reading_type: Reading origin (default: REGULAR)
            notes: Optional notes

        Returns:
            Tuple of (created MeterReading, warning or None)

        Raises:
            NotFoundError: Meter missing or not on one of the owner's properties
            InvalidStateError: Meter is archived
        """
        with atomic(self.db):
            meter = self._get_owned_meter(meter_id, owner_id)
            if meter.status != MeterStatus.ACTIVE:
                raise InvalidStateError(f"Meter {meter_id} is not active, cannot record readings")

            previous = self.get_latest_reading(meter_id)
            warning = None
            if previous is not None and value < previous.value:
                warning = (
                    f"New reading ({value}) is lower than the previous reading ({previous.value})"
                )
                logger.warning("Meter %s: %s", meter_id, warning)

            reading = MeterReading(
                meter_id=meter_id,
                value=value,
                reading_date=reading_date or date.today(),
                reading_type=reading_type,
                notes=notes,
            )
            self.db.add(reading)
            self.db.flush()

        logger.info(
            "Recorded %s reading %s on meter %s (%s)",
            reading_type.value,
            value,
            meter_id,
            reading.reading_date,
        )
        return reading, warning

    def exchange_meter(self, request: MeterExchangeRequest, owner_id: int) -> MeterExchangeResult:
        """Replace a physical meter while keeping its reading history continuous.

        Runs as one transaction:
        1. Validate the old meter (exists, owned, ACTIVE) and the final reading
        2. Record the final reading (METER_EXCHANGE) on the old meter
        3. Create the new meter copying property, type, unit and price
        4. Record the INITIAL reading on the new meter
        5. Archive the old meter and link it to the new one

        Args:
            request: Exchange parameters
            owner_id: Owner performing the exchange

        Returns:
            MeterExchangeResult with both meters and the two reading IDs

        Raises:
            NotFoundError: Old meter does not exist
            UnauthorizedError: Old meter is on another owner's property
            InvalidStateError: Old meter is not ACTIVE
            ValidationError: Final reading is below the last known reading
        """
        with atomic(self.db):
            old_meter = self.db.execute(
                select(Meter).where(Meter.id == request.old_meter_id).with_for_update()
            ).scalar_one_or_none()
            if old_meter is None:
                raise NotFoundError(f"Meter {request.old_meter_id} not found")

            property_obj = self.db.get(Property, old_meter.property_id)
            if property_obj is None or property_obj.owner_id != owner_id:
                raise UnauthorizedError("Meter does not belong to your property")

            if old_meter.status != MeterStatus.ACTIVE:
                raise InvalidStateError(
                    f"Meter {old_meter.id} is already {old_meter.status.value}, cannot exchange"
                )

            exchange_date = request.exchange_date or date.today()
            last_reading = self.get_latest_reading(old_meter.id)
            if last_reading is not None:
                if request.final_reading < last_reading.value:
                    raise ValidationError(
                        f"Final reading ({request.final_reading}) cannot be less than "
                        f"last reading ({last_reading.value})"
                    )
                if exchange_date < last_reading.reading_date:
                    raise ValidationError(
                        f"Exchange date ({exchange_date}) cannot be before "
                        f"last reading date ({last_reading.reading_date})"
                    )

            final_reading = MeterReading(
                meter_id=old_meter.id,
                value=request.final_reading,
                reading_date=exchange_date,
                reading_type=ReadingType.METER_EXCHANGE,
                notes=request.notes or "Final reading before meter exchange",
            )
            self.db.add(final_reading)

            new_meter = Meter(
                property_id=old_meter.property_id,
                meter_type=old_meter.meter_type,
                meter_number=request.new_meter_number,
                serial_number=request.new_serial_number,
                unit=old_meter.unit,
                price_per_unit=old_meter.price_per_unit,
                status=MeterStatus.ACTIVE,
                install_date=exchange_date,
            )
            self.db.add(new_meter)
            self.db.flush()

            initial_reading = MeterReading(
                meter_id=new_meter.id,
                value=request.new_initial_reading,
                reading_date=exchange_date,
                reading_type=ReadingType.INITIAL,
                notes="Initial reading of the new meter",
            )
            self.db.add(initial_reading)

            old_meter.status = MeterStatus.ARCHIVED
            old_meter.archive_date = exchange_date
            old_meter.archive_note = f"Replaced by {request.new_meter_number or new_meter.id}"
            old_meter.replaced_by_id = new_meter.id
            self.db.flush()

            AuditService.log(
                db=self.db,
                entity_type=AuditEntity.METER,
                entity_id=old_meter.id,
                action=AuditAction.EXCHANGE,
                actor_id=owner_id,
                changes={
                    "new_meter_id": new_meter.id,
                    "final_reading": str(request.final_reading),
                    "new_initial_reading": str(request.new_initial_reading),
                    "exchange_date": exchange_date.isoformat(),
                },
            )
            result = MeterExchangeResult(
                old_meter=old_meter,
                new_meter=new_meter,
                final_reading_id=final_reading.id,
                initial_reading_id=initial_reading.id,
            )

        logger.info(
            "Exchanged meter %s -> %s on %s (final=%s, initial=%s)",
            result.old_meter.id,
            result.new_meter.id,
            exchange_date,
            request.final_reading,
            request.new_initial_reading,
        )
        return result

    def get_meter_chain(self, meter_id: int) -> list[Meter]:
        """Get every meter of a physical installation, oldest first.

        Walks predecessors (meters whose replaced_by_id points here) and then
        successors (replaced_by_id) one lookup at a time.

        Raises:
            NotFoundError: Meter does not exist
        """
        meter = self.db.get(Meter, meter_id)
        if meter is None:
            raise NotFoundError(f"Meter {meter_id} not found")

        chain = [meter]
        seen = {meter.id}

        current = meter
        while True:
            predecessor = self.db.execute(
                select(Meter).where(Meter.replaced_by_id == current.id)
            ).scalar_one_or_none()
            if predecessor is None or predecessor.id in seen:
                break
            chain.insert(0, predecessor)
            seen.add(predecessor.id)
            current = predecessor

        current = meter
        while current.replaced_by_id is not None and current.replaced_by_id not in seen:
            current = self.db.get(Meter, current.replaced_by_id)
            if current is None:
                break
            chain.append(current)
            seen.add(current.id)

        return chain

    def calculate_chain_consumption(self, meter_id: int, start: date, end: date) -> Decimal:
        """Consumption of a physical installation between two dates, across exchanges.

        For every meter in the chain the usage is the value known at ``end``
        minus the value known at ``start``; a meter installed after ``start``
        uses its first (INITIAL) reading as the baseline. An archived meter's
        value at ``end`` is its METER_EXCHANGE reading, so the swap day is
        counted exactly once.

        Args:
            meter_id: Any meter in the chain
            start: Range start date
            end: Range end date

        Returns:
            Total consumption rounded to 2 decimal places (never negative per meter)
        """
        if end < start:
            raise ValidationError(f"end ({end}) must not be before start ({start})")

        total = Decimal("0")
        for meter in self.get_meter_chain(meter_id):
            readings = list(
                self.db.execute(
                    select(MeterReading)
                    .where(MeterReading.meter_id == meter.id)
                    .order_by(MeterReading.reading_date, MeterReading.id)
                )
                .scalars()
                .all()
            )
            if not readings:
                continue

            end_value = self._value_at(readings, end)
            if end_value is None:
                # Installed after the range
                continue

            start_value = self._value_at(readings, start)
            if start_value is None:
                start_value = readings[0].value

            total += max(Decimal("0"), end_value - start_value)

        return quantize_money(total)

    @staticmethod
    def _value_at(readings: list[MeterReading], on_or_before: date) -> Decimal | None:
        """Value of the last reading dated on or before a date (readings sorted ascending)."""
        value = None
        for reading in readings:
            if reading.reading_date > on_or_before:
                break
            value = reading.value
        return value

    def _get_owned_meter(self, meter_id: int, owner_id: int) -> Meter:
        stmt = (
            select(Meter)
            .join(Property, Property.id == Meter.property_id)
            .where(Meter.id == meter_id, Property.owner_id == owner_id)
        )
        meter = self.db.execute(stmt).scalar_one_or_none()
        if meter is None:
            raise NotFoundError(f"Meter {meter_id} not found")
        return meter


__all__ = ["MeterExchangeResult", "MeterService"]
