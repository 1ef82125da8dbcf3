"""Settlement calculator: turns readings and fixed costs into tenant shares.

Orchestrates one period calculation for a property:
1. Find tenants active in the period
2. Metered utilities: consumption between the two latest readings up to the
   period end, priced with the rate valid at the period end
   (a meter installed by an exchange within the period also carries the
   usage of the meter it replaced)
3. Fixed utilities: period cost, multiplied per person where configured
4. Smart split of the total across tenants
5. Advance payments netted out (ADVANCE_PAYMENT approach only)

The calculation reads state but writes nothing. Anything that prevents a line
from being priced is reported as a warning and the line is skipped; the owner
decides whether a settlement with warnings is good enough to finalize.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session

from src.config.settings import settings
from src.models.fixed_utility import FixedUtility, SplitMethod
from src.models.meter import Meter, MeterReading, MeterStatus, MeterType, ReadingType
from src.models.settlement import BillingApproach
from src.models.tenant import Tenant
from src.schemas.settlement import CalculateSettlementRequest
from src.services.meter_service import MeterService
from src.services.payment_service import PaymentService
from src.services.rate_service import RateService
from src.services.smart_split import (
    TenantPeriod,
    calculate_active_days,
    calculate_smart_split,
    quantize_money,
)

logger = logging.getLogger(__name__)

METER_TYPE_LABELS = {
    MeterType.ELECTRICITY: "Electricity",
    MeterType.GAS: "Gas",
    MeterType.WATER_COLD: "Cold water",
    MeterType.WATER_HOT: "Hot water",
    MeterType.HEATING: "Heating",
}


@dataclass
class CalculatedItem:
    """One priced cost line."""

    label: str
    total_cost: Decimal
    split_method: SplitMethod = SplitMethod.BY_DAYS
    meter_id: int | None = None
    fixed_utility_id: int | None = None
    unit: str | None = None
    prev_reading: Decimal | None = None
    curr_reading: Decimal | None = None
    consumption: Decimal | None = None
    rate: Decimal | None = None
    period_cost: Decimal | None = None


@dataclass
class CalculatedShare:
    """A tenant's share; advances_paid and balance_due are set for ADVANCE_PAYMENT only."""

    tenant_id: int
    active_days: int
    total_days: int
    share_ratio: Decimal
    amount: Decimal
    advances_paid: Decimal | None = None
    balance_due: Decimal | None = None


@dataclass
class CalculatedSettlement:
    """Result of a settlement calculation."""

    items: list[CalculatedItem] = field(default_factory=list)
    shares: list[CalculatedShare] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    warnings: list[str] = field(default_factory=list)


def meter_label(meter: Meter) -> str:
    """Display label of a meter's utility type."""
    return METER_TYPE_LABELS.get(meter.meter_type, str(meter.meter_type))


def meter_reference(meter: Meter) -> str:
    """Short identifier of a meter for warnings."""
    return meter.meter_number or f"#{meter.id}"


class SettlementCalculator:
    """Read-only settlement calculation for one property and period."""

    def __init__(
        self,
        db: Session,
        absorb_gap_days: bool | None = None,
        readings_lookback: int | None = None,
    ):
        """Initialize calculator.

        Args:
            db: SQLAlchemy session
            absorb_gap_days: Owner pays for vacant days (default from settings)
            readings_lookback: Recent readings loaded per meter (default from settings)
        """
        self.db = db
        self.absorb_gap_days = (
            settings.absorb_gap_days if absorb_gap_days is None else absorb_gap_days
        )
        self.readings_lookback = readings_lookback or settings.readings_lookback
        self.rates = RateService(db)
        self.payments = PaymentService(db)
        self.meters = MeterService(db)

    def calculate(self, request: CalculateSettlementRequest) -> CalculatedSettlement:
        """Calculate items, tenant shares and total for a period.

        Args:
            request: Property, inclusive period and billing approach

        Returns:
            CalculatedSettlement with warnings for everything that was skipped
        """
        result = CalculatedSettlement()

        tenant_periods = self._load_tenant_periods(request, result.warnings)

        for meter in self._load_active_meters(request.property_id):
            item = self._price_meter(meter, request, result.warnings)
            if item is not None:
                result.items.append(item)

        active_tenant_count = sum(
            1
            for period in tenant_periods
            if calculate_active_days(request.period_start, request.period_end, period) > 0
        )
        for utility in self._load_fixed_utilities(request.property_id):
            result.items.append(self._price_fixed_utility(utility, active_tenant_count))

        result.total_amount = quantize_money(sum((item.total_cost for item in result.items), Decimal(0)))

        splits = calculate_smart_split(
            request.period_start,
            request.period_end,
            result.total_amount,
            tenant_periods,
            absorb_gap_days=self.absorb_gap_days,
        )
        result.shares = [
            CalculatedShare(
                tenant_id=split.tenant_id,
                active_days=split.active_days,
                total_days=split.total_days,
                share_ratio=split.share_ratio,
                amount=split.amount,
            )
            for split in splits
        ]

        if request.approach == BillingApproach.ADVANCE_PAYMENT:
            for share in result.shares:
                share.advances_paid = self.payments.get_advances_paid(
                    share.tenant_id,
                    request.property_id,
                    request.period_start,
                    request.period_end,
                )
                share.balance_due = quantize_money(share.amount - share.advances_paid)

        for warning in result.warnings:
            logger.warning("Property %s: %s", request.property_id, warning)
        logger.info(
            "Calculated settlement for property %s %s..%s: %d items, %d shares, total %s",
            request.property_id,
            request.period_start,
            request.period_end,
            len(result.items),
            len(result.shares),
            result.total_amount,
        )
        return result

    def _load_tenant_periods(
        self, request: CalculateSettlementRequest, warnings: list[str]
    ) -> list[TenantPeriod]:
        stmt = (
            select(Tenant)
            .where(
                Tenant.property_id == request.property_id,
                Tenant.move_in_date.is_not(None),
                Tenant.move_in_date <= request.period_end,
                or_(Tenant.move_out_date.is_(None), Tenant.move_out_date >= request.period_start),
            )
            .order_by(Tenant.id)
        )
        tenants = self.db.execute(stmt).scalars().all()

        if not tenants:
            warnings.append("No active tenants in period")

        periods = []
        for tenant in tenants:
            if tenant.move_out_date is not None and tenant.move_out_date < tenant.move_in_date:
                warnings.append(
                    f"Tenant {tenant.id} moves out ({tenant.move_out_date}) before moving in "
                    f"({tenant.move_in_date}), skipped"
                )
                continue
            periods.append(TenantPeriod(tenant.id, tenant.move_in_date, tenant.move_out_date))
        return periods

    def _load_active_meters(self, property_id: int) -> list[Meter]:
        stmt = (
            select(Meter)
            .where(Meter.property_id == property_id, Meter.status == MeterStatus.ACTIVE)
            .order_by(Meter.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def _load_fixed_utilities(self, property_id: int) -> list[FixedUtility]:
        stmt = (
            select(FixedUtility)
            .where(FixedUtility.property_id == property_id, FixedUtility.is_active.is_(True))
            .order_by(FixedUtility.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def _recent_readings(self, meter_id: int, period_end: date) -> list[MeterReading]:
        stmt = (
            select(MeterReading)
            .where(MeterReading.meter_id == meter_id, MeterReading.reading_date <= period_end)
            .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
            .limit(self.readings_lookback)
        )
        return list(self.db.execute(stmt).scalars().all())

    def _price_meter(
        self,
        meter: Meter,
        request: CalculateSettlementRequest,
        warnings: list[str],
    ) -> CalculatedItem | None:
        label = meter_label(meter)
        readings = self._recent_readings(meter.id, request.period_end)
        baseline = self._exchange_baseline(meter, readings[:2], request, warnings)
        if baseline is None and len(readings) < 2:
            warnings.append(f"Not enough readings for {label} ({meter_reference(meter)})")
            return None

        curr_reading = readings[0]
        prev_reading = baseline or readings[1]

        rate = self.rates.get_effective_rate(request.property_id, meter.meter_type, request.period_end)
        price = rate.price_per_unit if rate is not None else meter.price_per_unit
        if price is None:
            warnings.append(f"No rate for {label} ({meter_reference(meter)})")
            return None

        if baseline is not None:
            # prev_reading is on the replaced meter, so measure across the chain
            consumption = self.meters.calculate_chain_consumption(
                meter.id, baseline.reading_date, curr_reading.reading_date
            )
        else:
            consumption = quantize_money(curr_reading.value - prev_reading.value)
        if consumption < 0:
            warnings.append(
                f"Negative consumption ({consumption}) for {label} ({meter_reference(meter)}), "
                f"check readings ({prev_reading.value} -> {curr_reading.value})"
            )

        return CalculatedItem(
            label=label,
            meter_id=meter.id,
            unit=meter.unit,
            prev_reading=prev_reading.value,
            curr_reading=curr_reading.value,
            consumption=consumption,
            rate=Decimal(price),
            total_cost=quantize_money(max(Decimal(0), consumption) * Decimal(price)),
            split_method=SplitMethod.BY_DAYS,
        )

    def _exchange_baseline(
        self,
        meter: Meter,
        readings: list[MeterReading],
        request: CalculateSettlementRequest,
        warnings: list[str],
    ) -> MeterReading | None:
        """Reading on the replaced meter to measure from, when this meter was installed in the period.

        Args:
            meter: Active meter being priced
            readings: Its latest readings up to the period end, newest first
            request: Calculation request
            warnings: Warning list to extend

        Returns:
            The replaced meter's last reading before its final (METER_EXCHANGE)
            reading, or None when no exchange happened within the period
        """
        if not readings:
            return None

        oldest = readings[-1]
        if oldest.reading_type != ReadingType.INITIAL or oldest.reading_date < request.period_start:
            return None

        predecessor = self.db.execute(
            select(Meter).where(Meter.replaced_by_id == meter.id)
        ).scalar_one_or_none()
        if predecessor is None:
            return None

        old_readings = self._recent_readings(predecessor.id, oldest.reading_date)
        if len(old_readings) < 2:
            warnings.append(
                f"Not enough readings for {meter_label(meter)} ({meter_reference(predecessor)}), "
                f"replaced by {meter_reference(meter)} on {oldest.reading_date}: its usage is not included"
            )
            return None

        return old_readings[1]

    @staticmethod
    def _price_fixed_utility(utility: FixedUtility, active_tenant_count: int) -> CalculatedItem:
        cost = Decimal(utility.period_cost)
        if utility.is_per_person:
            # At least one person so an empty period does not zero the cost
            cost = cost * max(1, active_tenant_count)

        return CalculatedItem(
            label=utility.name,
            fixed_utility_id=utility.id,
            period_cost=quantize_money(utility.period_cost),
            total_cost=quantize_money(cost),
            split_method=utility.split_method,
        )


__all__ = [
    "CalculatedItem",
    "CalculatedSettlement",
    "CalculatedShare",
    "SettlementCalculator",
]
