from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    CommissionType,
    CompensationType,
    Employee,
    FlatCommissionRule,
    PayPeriod,
    PayRun,
    PayRunItem,
    PayRunStatus,
    TieredCommissionSlab,
)
from app.services.commission_math_service import (
    CommissionSlab,
    flat_commission,
    hours_between,
    tiered_commission,
    validate_slabs,
    wage_amount,
)
from app.services.schedule_service import list_location_employees, shift_windows_for_date

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
SUPPLEMENTARY_SUFFIX = ' (Supplementary)'

ADJUSTMENT_TYPES = {
    'wages': CompensationType.SALARY,
    'tips': CompensationType.TIP,
    'other': CompensationType.ADJUSTMENT,
}

PAY_RUN_TRANSITIONS: dict[PayRunStatus, set[PayRunStatus]] = {
    PayRunStatus.DRAFT: {PayRunStatus.APPROVED, PayRunStatus.CANCELLED},
    PayRunStatus.APPROVED: {PayRunStatus.DRAFT, PayRunStatus.PAID, PayRunStatus.CANCELLED},
    PayRunStatus.PAID: set(),
    PayRunStatus.CANCELLED: set(),
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_or_create_pay_period(db: Session, *, start_date: date, end_date: date) -> PayPeriod:
    if end_date < start_date:
        raise ValueError('Pay period end cannot be before start')
    period = db.execute(
        select(PayPeriod).where(PayPeriod.start_date == start_date, PayPeriod.end_date == end_date)
    ).scalar_one_or_none()
    if period:
        return period
    period = PayPeriod(start_date=start_date, end_date=end_date)
    db.add(period)
    db.flush()
    return period


def set_flat_rules(db: Session, *, employee_id: int, rules: dict[int, Decimal]) -> None:
    if not db.get(Employee, employee_id):
        raise ValueError('Employee not found')
    for pct in rules.values():
        if pct < 0 or pct > 100:
            raise ValueError('Commission percentage must be between 0 and 100')
    for row in db.execute(select(FlatCommissionRule).where(FlatCommissionRule.employee_id == employee_id)).scalars():
        db.delete(row)
    db.flush()
    db.add_all(
        [FlatCommissionRule(employee_id=employee_id, service_id=sid, percentage=pct) for sid, pct in rules.items()]
    )
    db.flush()


def set_tiered_slabs(db: Session, *, employee_id: int, slabs: list[CommissionSlab]) -> None:
    if not db.get(Employee, employee_id):
        raise ValueError('Employee not found')
    validate_slabs(slabs)
    for row in db.execute(select(TieredCommissionSlab).where(TieredCommissionSlab.employee_id == employee_id)).scalars():
        db.delete(row)
    db.flush()
    db.add_all(
        [
            TieredCommissionSlab(
                employee_id=employee_id,
                min_amount=slab.min_amount,
                max_amount=slab.max_amount,
                percentage=slab.percentage,
                order_index=slab.order_index or index,
            )
            for index, slab in enumerate(slabs)
        ]
    )
    db.flush()


def scheduled_hours(db: Session, *, employee_id: int, start_date: date, end_date: date, location_id: int | None) -> Decimal:
    total = ZERO
    day = start_date
    while day <= end_date:
        for window in shift_windows_for_date(db, employee_id=employee_id, day=day, location_id=location_id):
            total += hours_between(window.start, window.end)
        day += timedelta(days=1)
    return total


def _commission_bookings(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
    only_unpaid: bool,
) -> list[Booking]:
    query = (
        select(Booking)
        .join(Appointment, Appointment.id == Booking.appointment_id)
        .where(
            Booking.employee_id == employee_id,
            Booking.status != BookingStatus.CANCELED,
            Appointment.status == AppointmentStatus.PAID,
            Appointment.start_time >= datetime.combine(start_date, time.min),
            Appointment.start_time < datetime.combine(end_date + timedelta(days=1), time.min),
        )
        .order_by(Booking.id.asc())
    )
    if only_unpaid:
        query = query.where(Booking.commission_paid.is_(False))
    return db.execute(query).scalars().all()


def commission_items(
    db: Session,
    *,
    employee: Employee,
    start_date: date,
    end_date: date,
    only_unpaid: bool,
) -> list[PayRunItem]:
    if employee.commission_type == CommissionType.NONE:
        return []
    bookings = _commission_bookings(
        db, employee_id=employee.id, start_date=start_date, end_date=end_date, only_unpaid=only_unpaid
    )
    triples = [(b.id, b.service_id, b.price_paid) for b in bookings]
    if employee.commission_type == CommissionType.FLAT:
        rules = {
            row.service_id: row.percentage
            for row in db.execute(select(FlatCommissionRule).where(FlatCommissionRule.employee_id == employee.id)).scalars()
        }
        lines = flat_commission(triples, rules)
    else:
        slabs = [
            CommissionSlab(
                min_amount=row.min_amount,
                max_amount=row.max_amount,
                percentage=row.percentage,
                order_index=row.order_index,
            )
            for row in db.execute(
                select(TieredCommissionSlab).where(TieredCommissionSlab.employee_id == employee.id)
            ).scalars()
        ]
        period_revenue = None
        if only_unpaid:
            period_revenue = sum(
                (
                    b.price_paid
                    for b in _commission_bookings(
                        db, employee_id=employee.id, start_date=start_date, end_date=end_date, only_unpaid=False
                    )
                ),
                ZERO,
            )
        lines = tiered_commission(triples, slabs, period_revenue)
    return [
        PayRunItem(
            employee_id=employee.id,
            compensation_type=CompensationType.COMMISSION,
            amount=line.amount,
            description=f'{line.percentage}% of {line.revenue}',
            source_booking_id=line.booking_id,
        )
        for line in lines
    ]


def create_pay_run(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    location_id: int | None = None,
    name: str | None = None,
    only_unpaid: bool = False,
) -> PayRun:
    """Draft a pay run of wages and commissions for the period.

    A supplementary run skips wages and only picks up commission on
    bookings not yet paid out by an earlier run.
    """
    period = get_or_create_pay_period(db, start_date=start_date, end_date=end_date)
    base_name = (name or '').strip() or f'Pay run {start_date.isoformat()} to {end_date.isoformat()}'
    run = PayRun(
        pay_period_id=period.id,
        location_id=location_id,
        name=base_name + SUPPLEMENTARY_SUFFIX if only_unpaid else base_name,
        status=PayRunStatus.DRAFT,
        is_supplementary=only_unpaid,
    )
    db.add(run)
    db.flush()

    items: list[PayRunItem] = []
    for employee in list_location_employees(db, location_id=location_id):
        if not only_unpaid:
            hours = scheduled_hours(
                db, employee_id=employee.id, start_date=start_date, end_date=end_date, location_id=location_id
            )
            wages = wage_amount(hours, employee.hourly_rate)
            if wages > 0:
                items.append(
                    PayRunItem(
                        employee_id=employee.id,
                        compensation_type=CompensationType.SALARY,
                        amount=wages,
                        description=f'{hours} h at {employee.hourly_rate}',
                    )
                )
        items.extend(
            commission_items(db, employee=employee, start_date=start_date, end_date=end_date, only_unpaid=only_unpaid)
        )

    for item in items:
        item.pay_run_id = run.id
    db.add_all(items)
    db.flush()
    logger.info('Pay run %s created with %d items', run.id, len(items))
    return run


def _get_run(db: Session, pay_run_id: int) -> PayRun:
    run = db.get(PayRun, pay_run_id)
    if not run:
        raise ValueError('Pay run not found')
    return run


def add_adjustment(
    db: Session,
    *,
    pay_run_id: int,
    employee_id: int,
    amount: Decimal,
    kind: str = 'other',
    is_addition: bool = True,
    description: str | None = None,
) -> PayRunItem:
    run = _get_run(db, pay_run_id)
    if run.status != PayRunStatus.DRAFT:
        raise ValueError('Only draft pay runs can be adjusted')
    if kind not in ADJUSTMENT_TYPES:
        raise ValueError(f'Unknown adjustment type: {kind}')
    if amount <= 0:
        raise ValueError('Adjustment amount must be greater than zero')
    if not db.get(Employee, employee_id):
        raise ValueError('Employee not found')
    item = PayRunItem(
        pay_run_id=run.id,
        employee_id=employee_id,
        compensation_type=ADJUSTMENT_TYPES[kind],
        amount=amount if is_addition else -amount,
        description=description,
    )
    db.add(item)
    db.flush()
    return item


def pay_run_summary(db: Session, *, pay_run_id: int) -> dict:
    run = _get_run(db, pay_run_id)
    period = db.get(PayPeriod, run.pay_period_id)
    rows = db.execute(
        select(PayRunItem, Employee.name)
        .join(Employee, Employee.id == PayRunItem.employee_id)
        .where(PayRunItem.pay_run_id == run.id)
        .order_by(Employee.name.asc(), PayRunItem.id.asc())
    ).all()

    employees: dict[int, dict] = {}
    for item, employee_name in rows:
        entry = employees.setdefault(
            item.employee_id,
            {
                'employee_id': item.employee_id,
                'employee_name': employee_name,
                'totals': {ct.value: ZERO for ct in CompensationType},
                'total': ZERO,
                'items': [],
            },
        )
        entry['totals'][item.compensation_type.value] += item.amount
        entry['total'] += item.amount
        entry['items'].append(
            {
                'id': item.id,
                'compensation_type': item.compensation_type.value,
                'amount': item.amount,
                'description': item.description,
                'source_booking_id': item.source_booking_id,
                'is_paid': item.is_paid,
            }
        )

    return {
        'id': run.id,
        'name': run.name,
        'status': run.status.value,
        'is_supplementary': run.is_supplementary,
        'start_date': period.start_date if period else None,
        'end_date': period.end_date if period else None,
        'paid_date': run.paid_date,
        'employees': list(employees.values()),
        'total': sum((e['total'] for e in employees.values()), ZERO),
    }


def update_pay_run_status(db: Session, *, pay_run_id: int, status: PayRunStatus) -> PayRun:
    run = _get_run(db, pay_run_id)
    if status == run.status:
        return run
    if status not in PAY_RUN_TRANSITIONS[run.status]:
        raise ValueError(f'Cannot move pay run from {run.status.value} to {status.value}')

    run.status = status
    if status == PayRunStatus.PAID:
        run.paid_date = _now()
        items = db.execute(select(PayRunItem).where(PayRunItem.pay_run_id == run.id)).scalars().all()
        booking_ids = [item.source_booking_id for item in items if item.source_booking_id is not None]
        for item in items:
            item.is_paid = True
        if booking_ids:
            for booking in db.execute(select(Booking).where(Booking.id.in_(booking_ids))).scalars():
                booking.commission_paid = True
    db.flush()
    logger.info('Pay run %s moved to %s', run.id, status.value)
    return run


def list_pay_runs(db: Session, *, limit: int = 50) -> list[dict]:
    rows = db.execute(
        select(PayRun, PayPeriod)
        .join(PayPeriod, PayPeriod.id == PayRun.pay_period_id)
        .order_by(PayPeriod.start_date.desc(), PayRun.id.desc())
        .limit(limit)
    ).all()
    return [
        {
            'id': run.id,
            'name': run.name,
            'status': run.status.value,
            'is_supplementary': run.is_supplementary,
            'start_date': period.start_date,
            'end_date': period.end_date,
            'paid_date': run.paid_date,
        }
        for run, period in rows
    ]
