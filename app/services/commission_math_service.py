from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


@dataclass(frozen=True)
class CommissionSlab:
    min_amount: Decimal
    max_amount: Decimal | None
    percentage: Decimal
    order_index: int = 0

    def matches(self, revenue: Decimal) -> bool:
        if revenue < self.min_amount:
            return False
        return self.max_amount is None or revenue <= self.max_amount


@dataclass(frozen=True)
class CommissionLine:
    booking_id: int | None
    service_id: int | None
    revenue: Decimal
    percentage: Decimal
    amount: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_slabs(slabs: Sequence[CommissionSlab]) -> None:
    ordered = sorted(slabs, key=lambda s: s.min_amount)
    for slab in ordered:
        if slab.min_amount < 0:
            raise ValueError('Slab minimum cannot be negative')
        if slab.max_amount is not None and slab.max_amount < slab.min_amount:
            raise ValueError('Slab maximum cannot be below its minimum')
        if slab.percentage < 0 or slab.percentage > HUNDRED:
            raise ValueError('Slab percentage must be between 0 and 100')
    for current, following in zip(ordered, ordered[1:]):
        if current.max_amount is None or following.min_amount <= current.max_amount:
            raise ValueError('Commission slabs overlap')


def select_slab(revenue: Decimal, slabs: Sequence[CommissionSlab]) -> CommissionSlab | None:
    for slab in sorted(slabs, key=lambda s: (s.order_index, s.min_amount)):
        if slab.matches(revenue):
            return slab
    return None


def flat_commission(
    bookings: Sequence[tuple[int | None, int | None, Decimal]],
    rules: Mapping[int, Decimal],
) -> list[CommissionLine]:
    """One line per (booking_id, service_id, revenue) with a rule for its service."""
    lines: list[CommissionLine] = []
    for booking_id, service_id, revenue in bookings:
        pct = rules.get(service_id) if service_id is not None else None
        if not pct or revenue <= 0:
            continue
        lines.append(
            CommissionLine(
                booking_id=booking_id,
                service_id=service_id,
                revenue=revenue,
                percentage=pct,
                amount=_money(revenue * pct / HUNDRED),
            )
        )
    return lines


def tiered_commission(
    bookings: Sequence[tuple[int | None, int | None, Decimal]],
    slabs: Sequence[CommissionSlab],
    period_revenue: Decimal | None = None,
) -> list[CommissionLine]:
    """The slab matching the period's revenue applies to every booking given.

    `period_revenue` defaults to the sum of `bookings`; pass the full period
    total when only part of the period is being paid out.
    """
    total = period_revenue if period_revenue is not None else sum((revenue for _, _, revenue in bookings), ZERO)
    slab = select_slab(total, slabs)
    if slab is None or not slab.percentage:
        return []
    return [
        CommissionLine(
            booking_id=booking_id,
            service_id=service_id,
            revenue=revenue,
            percentage=slab.percentage,
            amount=_money(revenue * slab.percentage / HUNDRED),
        )
        for booking_id, service_id, revenue in bookings
        if revenue > 0
    ]


def hours_between(start, end) -> Decimal:
    seconds = Decimal(int((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(CENT, rounding=ROUND_HALF_UP)


def wage_amount(hours: Decimal, hourly_rate: Decimal | None) -> Decimal:
    if not hourly_rate or hourly_rate <= 0 or hours <= 0:
        return ZERO
    return _money(hours * hourly_rate)
