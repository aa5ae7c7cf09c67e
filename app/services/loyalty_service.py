from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models import (
    Customer,
    CustomerMembership,
    DiscountType,
    LoyaltyProgramSettings,
    Membership,
    MembershipStatus,
)
from app.services.checkout_math_service import LoyaltyTerms, MembershipTerms

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def get_settings(db: Session) -> LoyaltyProgramSettings | None:
    return db.execute(select(LoyaltyProgramSettings).order_by(LoyaltyProgramSettings.id.asc()).limit(1)).scalar_one_or_none()


def loyalty_terms(row: LoyaltyProgramSettings | None) -> LoyaltyTerms:
    if row is None:
        return LoyaltyTerms(enabled=False)
    return LoyaltyTerms(
        enabled=row.enabled,
        points_per_spend=row.points_per_spend,
        point_value=row.point_value,
        min_redemption_points=row.min_redemption_points,
        min_billing_amount=row.min_billing_amount,
        apply_to_all=row.apply_to_all,
        applicable_services=tuple(row.applicable_services or ()),
        applicable_packages=tuple(row.applicable_packages or ()),
        max_redemption_type=row.max_redemption_type,
        max_redemption_value=row.max_redemption_value,
    )


def update_settings(
    db: Session,
    *,
    enabled: bool,
    points_per_spend: Decimal,
    point_value: Decimal = Decimal('1'),
    min_redemption_points: int = 100,
    min_billing_amount: Decimal | None = None,
    apply_to_all: bool = True,
    applicable_services: list[int] | None = None,
    applicable_packages: list[int] | None = None,
    points_validity_days: int | None = None,
    max_redemption_type: DiscountType | None = None,
    max_redemption_value: Decimal | None = None,
) -> LoyaltyProgramSettings:
    if points_per_spend < 0:
        raise ValueError('Points per spend cannot be negative')
    if point_value <= 0:
        raise ValueError('Point value must be greater than zero')
    if min_redemption_points < 0:
        raise ValueError('Minimum redemption points cannot be negative')
    if points_validity_days is not None and points_validity_days <= 0:
        raise ValueError('Points validity must be at least one day')
    if max_redemption_type == DiscountType.PERCENTAGE and max_redemption_value and max_redemption_value > 100:
        raise ValueError('Maximum redemption percentage cannot exceed 100')

    row = get_settings(db)
    if row is None:
        row = LoyaltyProgramSettings()
        db.add(row)
    row.enabled = enabled
    row.points_per_spend = points_per_spend
    row.point_value = point_value
    row.min_redemption_points = min_redemption_points
    row.min_billing_amount = min_billing_amount
    row.apply_to_all = apply_to_all
    row.applicable_services = list(applicable_services or [])
    row.applicable_packages = list(applicable_packages or [])
    row.points_validity_days = points_validity_days
    row.max_redemption_type = max_redemption_type
    row.max_redemption_value = max_redemption_value
    row.updated_at = _now()
    db.flush()
    return row


def _validity_days(row: LoyaltyProgramSettings | None) -> int | None:
    if row is not None and row.points_validity_days:
        return row.points_validity_days
    return settings.points_validity_days


def points_expired(customer: Customer, validity_days: int | None, *, now: datetime | None = None) -> bool:
    if not validity_days or customer.last_used is None:
        return False
    now = now or _now()
    return _as_utc(customer.last_used) + timedelta(days=validity_days) < now


def wallet_balance(db: Session, customer: Customer, *, now: datetime | None = None) -> int:
    if points_expired(customer, _validity_days(get_settings(db)), now=now):
        return 0
    return customer.wallet_balance or 0


def check_loyalty_balance(db: Session, *, customer_id: int) -> dict:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise ValueError('Customer not found')
    row = get_settings(db)
    terms = loyalty_terms(row)
    balance = wallet_balance(db, customer)

    if not terms.enabled:
        message = 'Loyalty program is not enabled'
        eligible = False
    elif balance < terms.min_redemption_points:
        message = f'At least {terms.min_redemption_points} points are required to redeem, customer has {balance}'
        eligible = False
    else:
        message = f'{balance} points available to redeem'
        eligible = True

    return {
        'customer_id': customer.id,
        'balance': balance,
        'min_redemption_points': terms.min_redemption_points,
        'point_value': terms.point_value,
        'eligible': eligible,
        'message': message,
    }


def apply_points(db: Session, *, customer: Customer, redeemed: int, earned: int) -> int:
    """Debit redeemed points and credit earned points, returning the new balance."""
    balance = wallet_balance(db, customer)
    if redeemed > balance:
        raise ValueError(f'Customer only has {balance} points')
    customer.wallet_balance = balance - redeemed + earned
    if redeemed or earned:
        customer.last_used = _now()
    db.flush()
    return customer.wallet_balance


def create_membership(
    db: Session,
    *,
    name: str,
    discount_type: DiscountType,
    discount_value: Decimal,
    price: Decimal = Decimal('0'),
    validity_months: int = 12,
    applicable_services: list[int] | None = None,
    applicable_packages: list[int] | None = None,
) -> Membership:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Membership name is required')
    if validity_months <= 0:
        raise ValueError('Validity must be at least one month')
    if discount_value < 0 or price < 0:
        raise ValueError('Membership price and discount cannot be negative')
    if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
        raise ValueError('Percentage discount cannot exceed 100')
    membership = Membership(
        name=clean,
        price=price,
        validity_months=validity_months,
        discount_type=discount_type,
        discount_value=discount_value,
        applicable_services=list(applicable_services or []),
        applicable_packages=list(applicable_packages or []),
        active=True,
    )
    db.add(membership)
    db.flush()
    return membership


def sell_membership(
    db: Session,
    *,
    customer_id: int,
    membership_id: int,
    start_date: date | None = None,
    amount_paid: Decimal | None = None,
) -> CustomerMembership:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise ValueError('Customer not found')
    membership = db.get(Membership, membership_id)
    if not membership or not membership.active:
        raise ValueError('Membership not found')

    start = start_date or date.today()
    sold = CustomerMembership(
        customer_id=customer_id,
        membership_id=membership_id,
        status=MembershipStatus.ACTIVE,
        start_date=start,
        end_date=add_months(start, membership.validity_months),
        amount_paid=membership.price if amount_paid is None else amount_paid,
    )
    db.add(sold)
    db.flush()
    logger.info('Membership %s sold to customer %s until %s', membership_id, customer_id, sold.end_date)
    return sold


def expire_memberships(db: Session, *, today: date | None = None) -> int:
    today = today or date.today()
    rows = db.execute(
        select(CustomerMembership).where(
            CustomerMembership.status == MembershipStatus.ACTIVE,
            CustomerMembership.end_date < today,
        )
    ).scalars().all()
    for row in rows:
        row.status = MembershipStatus.EXPIRED
    db.flush()
    return len(rows)


def active_membership_terms(db: Session, *, customer_id: int, on: date | None = None) -> list[MembershipTerms]:
    on = on or date.today()
    rows = db.execute(
        select(Membership)
        .join(CustomerMembership, CustomerMembership.membership_id == Membership.id)
        .where(
            CustomerMembership.customer_id == customer_id,
            CustomerMembership.status == MembershipStatus.ACTIVE,
            CustomerMembership.start_date <= on,
            CustomerMembership.end_date >= on,
            Membership.active.is_(True),
        )
        .order_by(Membership.id.asc())
    ).scalars().all()
    return [
        MembershipTerms(
            membership_id=m.id,
            name=m.name,
            discount_type=m.discount_type,
            discount_value=m.discount_value,
            applicable_services=tuple(m.applicable_services or ()),
            applicable_packages=tuple(m.applicable_packages or ()),
        )
        for m in rows
    ]
