from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import settings
from app.models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    Coupon,
    Customer,
    DiscountType,
    Location,
    TaxRate,
)
from app.services.audit_service import log_audit
from app.services.booking_service import appointment_detail, get_appointment
from app.services.checkout_math_service import (
    KIND_PACKAGE,
    KIND_SERVICE,
    CheckoutBreakdown,
    CouponTerms,
    LineItem,
    compute_checkout,
)
from app.services.inventory_service import consume_for_services
from app.services.loyalty_service import (
    active_membership_terms,
    apply_points,
    get_settings,
    loyalty_terms,
    wallet_balance,
)

logger = logging.getLogger(__name__)

CHECKOUT_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.INPROGRESS, AppointmentStatus.COMPLETED)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def line_items_for_bookings(bookings: list[Booking]) -> list[LineItem]:
    """Billable lines: standalone services and packages.

    Paid extras on a customized package are priced into that package's line.
    """
    package_totals: dict[int, Decimal] = {}
    service_items: list[LineItem] = []
    for booking in bookings:
        if booking.status == BookingStatus.CANCELED:
            continue
        if booking.service_id is None and booking.package_id is not None:
            package_totals[booking.package_id] = package_totals.get(booking.package_id, Decimal('0')) + booking.price_paid
        elif booking.package_id is None:
            service_items.append(LineItem(item_id=booking.service_id, kind=KIND_SERVICE, price=booking.price_paid))
    for booking in bookings:
        if booking.status == BookingStatus.CANCELED or booking.service_id is None or booking.package_id is None:
            continue
        if booking.price_paid <= 0:
            continue
        if booking.package_id in package_totals:
            package_totals[booking.package_id] += booking.price_paid
        else:
            service_items.append(LineItem(item_id=booking.service_id, kind=KIND_SERVICE, price=booking.price_paid))
    return service_items + [
        LineItem(item_id=package_id, kind=KIND_PACKAGE, price=total) for package_id, total in package_totals.items()
    ]


def find_coupon(db: Session, code: str | None) -> Coupon | None:
    clean = (code or '').strip()
    if not clean:
        return None
    coupon = db.execute(select(Coupon).where(func.lower(Coupon.code) == clean.lower())).scalar_one_or_none()
    if not coupon or not coupon.is_active:
        raise ValueError(f'Coupon {clean} is not valid')
    return coupon


def resolve_tax_rate(db: Session, *, appointment: Appointment, tax_id: int | None) -> TaxRate | None:
    if tax_id:
        tax = db.get(TaxRate, tax_id)
        if not tax or not tax.active:
            raise ValueError('Tax rate not found')
        return tax
    if appointment.location_id:
        location = db.get(Location, appointment.location_id)
        if location and location.service_tax_id:
            tax = db.get(TaxRate, location.service_tax_id)
            if tax and tax.active:
                return tax
    return None


def _active_bookings(db: Session, appointment_id: int) -> list[Booking]:
    return db.execute(
        select(Booking)
        .where(Booking.appointment_id == appointment_id, Booking.status != BookingStatus.CANCELED)
        .order_by(Booking.id.asc())
    ).scalars().all()


def quote_checkout(
    db: Session,
    *,
    appointment_id: int,
    coupon_code: str | None = None,
    tax_id: int | None = None,
    points_to_redeem: int = 0,
    on: date | None = None,
) -> CheckoutBreakdown:
    appointment = get_appointment(db, appointment_id)
    customer = db.get(Customer, appointment.customer_id)
    if not customer:
        raise ValueError('Customer not found')
    items = line_items_for_bookings(_active_bookings(db, appointment.id))
    if not items:
        raise ValueError('Appointment has nothing to bill')

    coupon = find_coupon(db, coupon_code)
    tax = resolve_tax_rate(db, appointment=appointment, tax_id=tax_id)
    return compute_checkout(
        items,
        memberships=active_membership_terms(db, customer_id=customer.id, on=on or appointment.start_time.date()),
        coupon=(
            CouponTerms(
                coupon_id=coupon.id,
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
            )
            if coupon
            else None
        ),
        loyalty=loyalty_terms(get_settings(db)),
        wallet_balance=wallet_balance(db, customer),
        points_to_redeem=points_to_redeem,
        tax_rate=tax.percentage if tax else None,
        discount_type=appointment.discount_type,
        discount_value=appointment.discount_value,
    )


def complete_checkout(
    db: Session,
    *,
    appointment_id: int,
    payment_method: str,
    actor_principal_id: int | None,
    ip: str | None,
    coupon_code: str | None = None,
    tax_id: int | None = None,
    points_to_redeem: int = 0,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if appointment.status == AppointmentStatus.PAID:
        raise ValueError('Appointment is already paid')
    if appointment.status not in CHECKOUT_STATUSES:
        raise ValueError(f'Cannot check out an appointment that is {appointment.status.value}')
    method = (payment_method or '').strip()
    if not method:
        raise ValueError('Payment method is required')

    breakdown = quote_checkout(
        db,
        appointment_id=appointment_id,
        coupon_code=coupon_code,
        tax_id=tax_id,
        points_to_redeem=points_to_redeem,
    )
    tax = resolve_tax_rate(db, appointment=appointment, tax_id=tax_id)

    appointment.subtotal = breakdown.subtotal
    appointment.membership_id = breakdown.membership_id
    appointment.membership_name = breakdown.membership_name
    appointment.membership_discount = breakdown.membership_discount
    appointment.manual_discount = breakdown.manual_discount
    appointment.coupon_id = breakdown.coupon_id
    appointment.coupon_discount = breakdown.coupon_discount
    appointment.points_redeemed = breakdown.points_redeemed
    appointment.points_discount_amount = breakdown.points_discount
    appointment.points_earned = breakdown.points_earned
    appointment.tax_id = tax.id if tax else None
    appointment.tax_amount = breakdown.tax_amount
    appointment.round_off_difference = breakdown.round_off_difference
    appointment.total_price = breakdown.total
    appointment.payment_method = method
    appointment.status = AppointmentStatus.PAID
    appointment.paid_at = _now()

    bookings = _active_bookings(db, appointment.id)
    for booking in bookings:
        booking.status = BookingStatus.COMPLETED

    customer = db.get(Customer, appointment.customer_id)
    balance = apply_points(db, customer=customer, redeemed=breakdown.points_redeemed, earned=breakdown.points_earned)
    consumed = consume_for_services(db, service_ids=[b.service_id for b in bookings if b.service_id is not None])

    log_audit(
        db,
        actor_principal_id=actor_principal_id,
        action='APPOINTMENT_CHECKOUT_COMPLETED',
        appointment_id=appointment.id,
        ip=ip,
        metadata={
            'total': str(breakdown.total),
            'payment_method': method,
            'points_redeemed': breakdown.points_redeemed,
            'points_earned': breakdown.points_earned,
            'wallet_balance': balance,
            'items_consumed': len(consumed),
            'warnings': breakdown.warnings,
        },
    )
    db.flush()
    logger.info('Appointment %s paid: %s %s', appointment.id, breakdown.total, settings.currency_code)
    return appointment


def bill_context(db: Session, *, appointment_id: int) -> dict:
    appointment = get_appointment(db, appointment_id)
    if appointment.status != AppointmentStatus.PAID:
        raise ValueError('Bill is only available for paid appointments')
    detail = appointment_detail(db, appointment_id)
    location = db.get(Location, appointment.location_id) if appointment.location_id else None
    tax = db.get(TaxRate, appointment.tax_id) if appointment.tax_id else None
    return {
        'business_name': settings.business_name,
        'currency_code': settings.currency_code,
        'location': location,
        'appointment': appointment,
        'detail': detail,
        'lines': [b for b in detail['bookings'] if b['price_paid'] > 0 or b['service_id'] is None],
        'tax': tax,
    }


def create_coupon(
    db: Session,
    *,
    code: str,
    discount_type: DiscountType,
    discount_value: Decimal,
    description: str | None = None,
) -> Coupon:
    clean = (code or '').strip().upper()
    if not clean:
        raise ValueError('Coupon code is required')
    if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
        raise ValueError('Percentage discount cannot exceed 100')
    if db.execute(select(Coupon.id).where(func.lower(Coupon.code) == clean.lower())).first():
        raise ValueError(f'Coupon {clean} already exists')
    coupon = Coupon(code=clean, discount_type=discount_type, discount_value=discount_value, description=description)
    db.add(coupon)
    db.flush()
    return coupon


def list_tax_rates(db: Session) -> list[TaxRate]:
    return db.execute(select(TaxRate).where(TaxRate.active.is_(True)).order_by(TaxRate.name.asc())).scalars().all()
