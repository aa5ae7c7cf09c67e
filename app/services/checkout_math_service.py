from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal

from app.models import DiscountType

ZERO = Decimal('0')
CENT = Decimal('0.01')
HUNDRED = Decimal('100')

KIND_SERVICE = 'service'
KIND_PACKAGE = 'package'


@dataclass(frozen=True)
class LineItem:
    item_id: int
    kind: str
    price: Decimal


@dataclass(frozen=True)
class MembershipTerms:
    membership_id: int
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    applicable_services: tuple[int, ...] = ()
    applicable_packages: tuple[int, ...] = ()

    def covers(self, item: LineItem) -> bool:
        # An empty list means every item of that kind qualifies.
        allowed = self.applicable_services if item.kind == KIND_SERVICE else self.applicable_packages
        return not allowed or item.item_id in allowed


@dataclass(frozen=True)
class CouponTerms:
    coupon_id: int
    code: str
    discount_type: DiscountType
    discount_value: Decimal


@dataclass(frozen=True)
class LoyaltyTerms:
    enabled: bool = False
    points_per_spend: Decimal = Decimal('1')
    point_value: Decimal = Decimal('1')
    min_redemption_points: int = 100
    min_billing_amount: Decimal | None = None
    apply_to_all: bool = True
    applicable_services: tuple[int, ...] = ()
    applicable_packages: tuple[int, ...] = ()
    max_redemption_type: DiscountType | None = None
    max_redemption_value: Decimal | None = None

    def covers(self, item: LineItem) -> bool:
        if self.apply_to_all:
            return True
        allowed = self.applicable_services if item.kind == KIND_SERVICE else self.applicable_packages
        return item.item_id in allowed


@dataclass(frozen=True)
class CheckoutBreakdown:
    subtotal: Decimal
    membership_id: int | None
    membership_name: str | None
    membership_discount: Decimal
    manual_discount: Decimal
    coupon_id: int | None
    coupon_discount: Decimal
    points_redeemed: int
    points_discount: Decimal
    discounted_subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    unrounded_total: Decimal
    total: Decimal
    round_off_difference: Decimal
    points_earned: int
    warnings: list[str] = field(default_factory=list)


def money(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def discount_amount(price: Decimal, discount_type: DiscountType | None, discount_value: Decimal | None) -> Decimal:
    if price <= 0 or not discount_type or discount_type == DiscountType.NONE or not discount_value or discount_value <= 0:
        return ZERO
    if discount_type == DiscountType.PERCENTAGE:
        return min(price * discount_value / HUNDRED, price)
    return min(discount_value, price)


def apply_discount(total: Decimal, discount_type: DiscountType | None, discount_value: Decimal | None) -> Decimal:
    return max(total - discount_amount(total, discount_type, discount_value), ZERO)


def best_membership_discount(
    items: Iterable[LineItem],
    memberships: Sequence[MembershipTerms],
) -> tuple[Decimal, MembershipTerms | None]:
    """Best single-item discount across every active membership.

    Only the largest discount found is applied; memberships do not stack.
    """
    best = ZERO
    best_terms: MembershipTerms | None = None
    for item in items:
        for terms in memberships:
            if not terms.covers(item):
                continue
            amount = discount_amount(item.price, terms.discount_type, terms.discount_value)
            if amount > best:
                best = amount
                best_terms = terms
    return best, best_terms


def coupon_discount(subtotal: Decimal, coupon: CouponTerms | None) -> Decimal:
    if coupon is None:
        return ZERO
    return discount_amount(subtotal, coupon.discount_type, coupon.discount_value)


def points_earned(amount: Decimal, points_per_spend: Decimal) -> int:
    """Points per 100 currency units spent, rounded down."""
    if not amount or amount <= 0 or not points_per_spend or points_per_spend <= 0:
        return 0
    return int((amount * points_per_spend / HUNDRED).to_integral_value(rounding=ROUND_FLOOR))


def points_value(points: int, point_value: Decimal = Decimal('1')) -> Decimal:
    if not points or points <= 0 or not point_value or point_value <= 0:
        return ZERO
    return Decimal(points) * point_value


def max_redeemable_points(
    wallet_balance: int,
    subtotal: Decimal,
    min_points: int,
    max_type: DiscountType | None,
    max_value: Decimal | None,
    point_value: Decimal = Decimal('1'),
) -> int:
    if wallet_balance < min_points or subtotal <= 0 or point_value <= 0:
        return 0

    max_points = wallet_balance
    if max_type == DiscountType.FIXED and max_value:
        max_points = min(max_points, int(max_value))
    elif max_type == DiscountType.PERCENTAGE and max_value:
        cap_amount = subtotal * max_value / HUNDRED
        max_points = min(max_points, int((cap_amount / point_value).to_integral_value(rounding=ROUND_FLOOR)))

    # Never more points than it takes to cover the bill.
    max_points = min(max_points, int((subtotal / point_value).to_integral_value(rounding=ROUND_CEILING)))
    if max_points < min_points:
        return 0
    return max_points


def loyalty_eligible_amount(items: Sequence[LineItem], terms: LoyaltyTerms, subtotal: Decimal) -> Decimal:
    if not terms.enabled:
        return ZERO
    if terms.min_billing_amount and subtotal < terms.min_billing_amount:
        return ZERO
    if terms.apply_to_all:
        return subtotal
    return sum((item.price for item in items if terms.covers(item)), ZERO)


def tax_amount(amount: Decimal, rate: Decimal | None) -> Decimal:
    if not rate or rate <= 0 or amount <= 0:
        return ZERO
    return amount * rate / HUNDRED


def round_total(total: Decimal) -> tuple[Decimal, Decimal]:
    rounded = total.quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return rounded, money(rounded - total)


def compute_checkout(
    items: Sequence[LineItem],
    *,
    memberships: Sequence[MembershipTerms] = (),
    coupon: CouponTerms | None = None,
    loyalty: LoyaltyTerms | None = None,
    wallet_balance: int = 0,
    points_to_redeem: int = 0,
    tax_rate: Decimal | None = None,
    discount_type: DiscountType | None = None,
    discount_value: Decimal | None = None,
) -> CheckoutBreakdown:
    """Membership, then the manual discount, then coupon, then loyalty points, then tax on what is left."""
    loyalty = loyalty or LoyaltyTerms()
    warnings: list[str] = []
    subtotal = sum((item.price for item in items), ZERO)

    membership_discount, membership = best_membership_discount(items, memberships)
    after_membership = subtotal - membership_discount

    manual = discount_amount(after_membership, discount_type, discount_value)
    after_manual = after_membership - manual

    coupon_amount = coupon_discount(after_manual, coupon)
    after_coupon = after_manual - coupon_amount

    redeemed = 0
    points_discount = ZERO
    if points_to_redeem < 0:
        raise ValueError('Points to redeem cannot be negative')
    if points_to_redeem:
        if not loyalty.enabled:
            raise ValueError('Loyalty program is not enabled')
        if wallet_balance < loyalty.min_redemption_points:
            raise ValueError(
                f'At least {loyalty.min_redemption_points} points are required to redeem, customer has {wallet_balance}'
            )
        allowed = max_redeemable_points(
            wallet_balance,
            after_coupon,
            loyalty.min_redemption_points,
            loyalty.max_redemption_type,
            loyalty.max_redemption_value,
            loyalty.point_value,
        )
        if points_to_redeem > allowed:
            raise ValueError(f'At most {allowed} points can be redeemed on this bill')
        redeemed = points_to_redeem
        points_discount = min(points_value(redeemed, loyalty.point_value), after_coupon)

    discounted = after_coupon - points_discount
    tax = tax_amount(discounted, tax_rate)
    unrounded = discounted + tax
    total, round_off = round_total(unrounded)

    eligible = min(loyalty_eligible_amount(items, loyalty, subtotal), discounted)
    earned = points_earned(eligible, loyalty.points_per_spend) if loyalty.enabled else 0
    if loyalty.enabled and loyalty.min_billing_amount and subtotal < loyalty.min_billing_amount:
        warnings.append('Bill is below the minimum amount for earning points')

    return CheckoutBreakdown(
        subtotal=money(subtotal),
        membership_id=membership.membership_id if membership else None,
        membership_name=membership.name if membership else None,
        membership_discount=money(membership_discount),
        manual_discount=money(manual),
        coupon_id=coupon.coupon_id if coupon and coupon_amount > 0 else None,
        coupon_discount=money(coupon_amount),
        points_redeemed=redeemed,
        points_discount=money(points_discount),
        discounted_subtotal=money(discounted),
        tax_rate=tax_rate or ZERO,
        tax_amount=money(tax),
        unrounded_total=money(unrounded),
        total=total,
        round_off_difference=round_off,
        points_earned=earned,
        warnings=warnings,
    )
