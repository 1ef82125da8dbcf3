"""Time-weighted cost split among tenants of a billing period ("smart split").

Distributes a shared utility cost among tenants proportionally to the days each
of them occupied the property within the period, or equally per lease/occupant.

Example: period Jan 1-31, tenant A leaves Jan 10, tenant B moves in Jan 15.
    Occupied days: A=10, B=17, sum=27
    A pays 10/27 (about 37.0%), B pays 17/27 (about 63.0%)
    Gap days Jan 11-14 are absorbed by the owner by default.

Rounding: every tenant but the last gets their amount rounded to cents; the last
tenant (highest tenant_id) receives whatever remains, so the shares always add
up to the total exactly.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from src.models.fixed_utility import SplitMethod

CENT = Decimal("0.01")
RATIO_PRECISION = Decimal("0.0001")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal | int | str | None) -> Decimal:
    """Round a money value to 2 decimal places (half up)."""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def round_ratio(value: Decimal) -> Decimal:
    """Round a share ratio to 4 decimal places (half up)."""
    return Decimal(value).quantize(RATIO_PRECISION, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TenantPeriod:
    """Tenant occupancy interval, both ends inclusive; lease_end None = still occupying."""

    tenant_id: int
    lease_start: date
    lease_end: date | None = None

    def __post_init__(self) -> None:
        if self.lease_end is not None and self.lease_end < self.lease_start:
            raise ValueError(
                f"lease_end ({self.lease_end}) is before lease_start ({self.lease_start}) "
                f"for tenant {self.tenant_id}"
            )


@dataclass
class SplitResult:
    """One tenant's part of a split cost."""

    tenant_id: int
    active_days: int
    total_days: int
    share_ratio: Decimal
    amount: Decimal


def calculate_active_days(period_start: date, period_end: date, tenant: TenantPeriod) -> int:
    """Count the days a tenant occupied the property within a period (inclusive)."""
    effective_start = max(period_start, tenant.lease_start)
    effective_end = min(period_end, tenant.lease_end) if tenant.lease_end else period_end

    if effective_start > effective_end:
        return 0

    return (effective_end - effective_start).days + 1


def calculate_smart_split(
    period_start: date,
    period_end: date,
    total_cost: Decimal,
    tenants: Iterable[TenantPeriod],
    absorb_gap_days: bool = True,
    split_method: SplitMethod = SplitMethod.BY_DAYS,
) -> list[SplitResult]:
    """Split a period's total cost among the tenants active in it.

    Args:
        period_start: First day of the billing period (inclusive)
        period_end: Last day of the billing period (inclusive)
        total_cost: Cost to distribute
        tenants: Occupancy intervals; tenants without overlap are ignored
        absorb_gap_days: BY_DAYS only. True divides by the days actually occupied
            (owner pays for vacancy); False divides by all days in the period
            (tenants share the vacancy cost). Overlapping tenants that occupy more
            tenant-days than the period has are divided by their own days
        split_method: BY_DAYS (default), EQUAL or BY_PERSONS. MANUAL is split
            BY_DAYS and left for the owner to adjust

    Returns:
        One SplitResult per active tenant, ordered by tenant_id. Empty when the
        cost is not positive, the period is empty or nobody was active.
    """
    total = quantize_money(total_cost)
    total_days = (period_end - period_start).days + 1

    if total <= 0 or total_days <= 0:
        return []

    active = sorted(
        (
            (tenant, calculate_active_days(period_start, period_end, tenant))
            for tenant in tenants
        ),
        key=lambda pair: pair[0].tenant_id,
    )
    active = [(tenant, days) for tenant, days in active if days > 0]

    if not active:
        return []

    if split_method in (SplitMethod.EQUAL, SplitMethod.BY_PERSONS):
        # Same arithmetic for both policies, see SplitMethod
        weights = [Decimal(1)] * len(active)
        denominator = Decimal(len(active))
    else:
        weights = [Decimal(days) for _, days in active]
        occupied = sum(weights)
        # Overlapping leases can occupy more tenant-days than the period has
        denominator = occupied if absorb_gap_days else max(Decimal(total_days), occupied)

    results: list[SplitResult] = []
    allocated = ZERO
    last_index = len(active) - 1

    for index, ((tenant, days), weight) in enumerate(zip(active, weights)):
        if index == last_index:
            amount = quantize_money(total - allocated)
        else:
            amount = quantize_money(total * weight / denominator)
            allocated += amount

        results.append(
            SplitResult(
                tenant_id=tenant.tenant_id,
                active_days=days,
                total_days=total_days,
                share_ratio=round_ratio(weight / denominator),
                amount=amount,
            )
        )

    return results


__all__ = [
    "SplitResult",
    "TenantPeriod",
    "calculate_active_days",
    "calculate_smart_split",
    "quantize_money",
    "round_ratio",
]
