from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    Employee,
    InventoryItem,
    ItemStatus,
    Service,
)

ZERO = Decimal('0')


def _range(from_date: date, to_date: date) -> tuple[datetime, datetime]:
    if to_date < from_date:
        raise ValueError('End date cannot be before start date')
    return datetime.combine(from_date, time.min), datetime.combine(to_date + timedelta(days=1), time.min)


def _paid_appointments(db: Session, from_date: date, to_date: date) -> list[Appointment]:
    start, end = _range(from_date, to_date)
    return db.execute(
        select(Appointment)
        .where(
            Appointment.status == AppointmentStatus.PAID,
            Appointment.start_time >= start,
            Appointment.start_time < end,
        )
        .order_by(Appointment.start_time.asc())
    ).scalars().all()


def financial_summary(db: Session, *, from_date: date, to_date: date) -> dict:
    appointments = _paid_appointments(db, from_date, to_date)
    gross = sum((a.subtotal for a in appointments), ZERO)
    membership = sum((a.membership_discount for a in appointments), ZERO)
    manual = sum((a.manual_discount for a in appointments), ZERO)
    coupon = sum((a.coupon_discount for a in appointments), ZERO)
    points = sum((a.points_discount_amount for a in appointments), ZERO)
    tax = sum((a.tax_amount for a in appointments), ZERO)
    collected = sum((a.total_price for a in appointments), ZERO)
    count = len(appointments)
    return {
        'from_date': from_date,
        'to_date': to_date,
        'appointments': count,
        'gross_sales': gross,
        'membership_discounts': membership,
        'manual_discounts': manual,
        'coupon_discounts': coupon,
        'points_discounts': points,
        'total_discounts': membership + manual + coupon + points,
        'tax': tax,
        'collected': collected,
        'net_revenue': collected - tax,
        'average_ticket': (collected / count).quantize(Decimal('0.01')) if count else ZERO,
    }


def daily_revenue(db: Session, *, from_date: date, to_date: date) -> list[dict]:
    appointments = _paid_appointments(db, from_date, to_date)
    by_day: dict[date, dict] = {}
    current = from_date
    while current <= to_date:
        by_day[current] = {'date': current, 'appointments': 0, 'revenue': ZERO}
        current += timedelta(days=1)
    for appointment in appointments:
        row = by_day[appointment.start_time.date()]
        row['appointments'] += 1
        row['revenue'] += appointment.total_price
    return list(by_day.values())


def revenue_by_payment_method(db: Session, *, from_date: date, to_date: date) -> list[dict]:
    totals: dict[str, dict] = {}
    for appointment in _paid_appointments(db, from_date, to_date):
        method = appointment.payment_method or 'unknown'
        row = totals.setdefault(method, {'payment_method': method, 'appointments': 0, 'revenue': ZERO})
        row['appointments'] += 1
        row['revenue'] += appointment.total_price
    return sorted(totals.values(), key=lambda r: r['revenue'], reverse=True)


def _paid_bookings_query(from_date: date, to_date: date):
    start, end = _range(from_date, to_date)
    return (
        select(Booking)
        .join(Appointment, Appointment.id == Booking.appointment_id)
        .where(
            Appointment.status == AppointmentStatus.PAID,
            Appointment.start_time >= start,
            Appointment.start_time < end,
            Booking.status != BookingStatus.CANCELED,
        )
    )


def top_services(db: Session, *, from_date: date, to_date: date, limit: int = 10) -> list[dict]:
    bookings = _paid_bookings_query(from_date, to_date).subquery()
    rows = db.execute(
        select(Service.id, Service.name, func.count(bookings.c.id), func.coalesce(func.sum(bookings.c.price_paid), 0))
        .join(bookings, bookings.c.service_id == Service.id)
        .group_by(Service.id, Service.name)
        .order_by(func.count(bookings.c.id).desc(), Service.name.asc())
        .limit(limit)
    ).all()
    return [
        {'service_id': service_id, 'service_name': name, 'bookings': int(count), 'revenue': Decimal(str(revenue))}
        for service_id, name, count, revenue in rows
    ]


def sales_by_employee(db: Session, *, from_date: date, to_date: date) -> list[dict]:
    bookings = _paid_bookings_query(from_date, to_date).subquery()
    rows = db.execute(
        select(Employee.id, Employee.name, func.count(bookings.c.id), func.coalesce(func.sum(bookings.c.price_paid), 0))
        .join(bookings, bookings.c.employee_id == Employee.id)
        .group_by(Employee.id, Employee.name)
        .order_by(func.coalesce(func.sum(bookings.c.price_paid), 0).desc(), Employee.name.asc())
    ).all()
    return [
        {'employee_id': employee_id, 'employee_name': name, 'bookings': int(count), 'revenue': Decimal(str(revenue))}
        for employee_id, name, count, revenue in rows
    ]


def inventory_status(db: Session) -> dict:
    items = db.execute(select(InventoryItem).where(InventoryItem.status == ItemStatus.ACTIVE)).scalars().all()
    low = [i for i in items if (i.quantity or ZERO) <= (i.minimum_quantity or ZERO)]
    return {
        'items': len(items),
        'low_stock': len(low),
        'out_of_stock': sum(1 for i in items if (i.quantity or ZERO) <= 0),
        'stock_value': sum(((i.quantity or ZERO) * (i.unit_price or ZERO) for i in items), ZERO).quantize(
            Decimal('0.01')
        ),
        'low_stock_items': [
            {'id': i.id, 'name': i.name, 'quantity': i.quantity, 'minimum_quantity': i.minimum_quantity} for i in low
        ],
    }
