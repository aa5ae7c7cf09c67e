from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    Customer,
    DiscountType,
    Employee,
    Package,
    Service,
)
from app.services.availability_service import available_slots, busy_intervals, first_conflict, stylists_for_service
from app.services.catalog_service import (
    ServiceInfo,
    calculate_package_price,
    get_service_price_in_package,
    get_total_duration,
    load_package_infos,
    load_service_infos,
)
from app.services.checkout_math_service import apply_discount, money
from app.services.schedule_service import parse_hhmm

logger = logging.getLogger(__name__)

APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.BOOKED: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED},
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.INPROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.NOSHOW,
    },
    AppointmentStatus.INPROGRESS: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED},
    AppointmentStatus.COMPLETED: {AppointmentStatus.PAID},
    AppointmentStatus.PAID: set(),
    AppointmentStatus.CANCELED: set(),
    AppointmentStatus.NOSHOW: set(),
}


class BookingConflictError(ValueError):
    pass


@dataclass(frozen=True)
class WizardStep:
    service_id: int
    stylist_id: int
    day: date
    time: str

    @property
    def start(self) -> datetime:
        return datetime.combine(self.day, parse_hhmm(self.time))


SlotChecker = Callable[[int, int, date, str], bool]


class BookingWizard:
    """Collects a stylist, date and time for each selected service in turn."""

    def __init__(self, service_ids: Sequence[int], slot_checker: SlotChecker | None = None) -> None:
        if not service_ids:
            raise ValueError('Select at least one service')
        self.service_ids = list(service_ids)
        self.slot_checker = slot_checker
        self.steps: list[WizardStep] = []

    @property
    def current_step(self) -> int:
        return len(self.steps)

    @property
    def total_steps(self) -> int:
        return len(self.service_ids)

    @property
    def is_complete(self) -> bool:
        return len(self.steps) == len(self.service_ids)

    @property
    def current_service_id(self) -> int | None:
        if self.is_complete:
            return None
        return self.service_ids[self.current_step]

    def choose(self, *, stylist_id: int, day: date, time_value: str) -> WizardStep:
        service_id = self.current_service_id
        if service_id is None:
            raise ValueError('All services are already scheduled')
        parse_hhmm(time_value)
        if self.slot_checker and not self.slot_checker(service_id, stylist_id, day, time_value):
            raise BookingConflictError(f'{time_value} on {day.isoformat()} is not available for this stylist')
        step = WizardStep(service_id=service_id, stylist_id=stylist_id, day=day, time=time_value)
        self.steps.append(step)
        return step

    def back(self) -> WizardStep | None:
        if not self.steps:
            return None
        return self.steps.pop()

    def result(self) -> list[WizardStep]:
        if not self.is_complete:
            raise ValueError(f'Step {self.current_step + 1} of {self.total_steps} is not scheduled yet')
        return list(self.steps)


def make_slot_checker(
    db: Session,
    *,
    services: Mapping[int, ServiceInfo],
    location_id: int | None = None,
) -> SlotChecker:
    def _check(service_id: int, stylist_id: int, day: date, time_value: str) -> bool:
        service = services.get(service_id)
        if not service:
            return False
        if stylist_id not in {e.id for e in stylists_for_service(db, service_id=service_id)}:
            return False
        slots = available_slots(
            db,
            employee_id=stylist_id,
            day=day,
            duration_minutes=service.duration,
            location_id=location_id,
        )
        return any(slot.value == time_value for slot in slots)

    return _check


def _ensure_customer(db: Session, customer_id: int | None) -> Customer:
    if not customer_id:
        raise ValueError('Customer is required')
    customer = db.get(Customer, customer_id)
    if not customer:
        raise ValueError('Customer not found')
    return customer


def _check_conflicts(db: Session, planned: list[tuple[int | None, datetime | None, datetime | None]], day: date) -> None:
    employee_ids = sorted({emp for emp, start, end in planned if emp and start and end})
    if not employee_ids:
        return
    busy = busy_intervals(db, employee_ids=employee_ids, day=day)
    taken: dict[int, list[tuple[datetime, datetime]]] = {}
    for employee_id, start, end in planned:
        if not employee_id or not start or not end:
            continue
        conflict = first_conflict(busy.get(employee_id, []), start, end)
        if conflict:
            raise BookingConflictError(
                f'Stylist {employee_id} is already booked from {conflict.start:%H:%M} to {conflict.end:%H:%M}'
            )
        for other_start, other_end in taken.get(employee_id, []):
            if start < other_end and end > other_start:
                raise BookingConflictError(f'Stylist {employee_id} is booked twice at {start:%H:%M}')
        taken.setdefault(employee_id, []).append((start, end))


def create_appointment_from_wizard(
    db: Session,
    *,
    customer_id: int,
    steps: Sequence[WizardStep],
    location_id: int | None = None,
    notes: str | None = None,
    created_by_principal_id: int | None = None,
) -> Appointment:
    _ensure_customer(db, customer_id)
    if not steps:
        raise ValueError('Select at least one service')

    services = load_service_infos(db, [s.service_id for s in steps])
    planned = []
    for step in steps:
        service = services.get(step.service_id)
        if not service:
            raise ValueError(f'Service {step.service_id} not found')
        planned.append((step, service, step.start, step.start + timedelta(minutes=service.duration)))

    days = {start.date() for _, _, start, _ in planned}
    for day in days:
        _check_conflicts(
            db,
            [(step.stylist_id, start, end) for step, _, start, end in planned if start.date() == day],
            day,
        )

    start_time = min(start for _, _, start, _ in planned)
    end_time = max(end for _, _, _, end in planned)
    subtotal = sum((service.selling_price for _, service, _, _ in planned), Decimal('0'))

    appointment = Appointment(
        customer_id=customer_id,
        location_id=location_id,
        start_time=start_time,
        end_time=end_time,
        status=AppointmentStatus.BOOKED,
        total_duration=sum(service.duration for _, service, _, _ in planned),
        number_of_bookings=len(planned),
        subtotal=money(subtotal),
        total_price=money(subtotal),
        original_total_price=money(subtotal),
        notes=notes.strip() if notes and notes.strip() else None,
        created_by_principal_id=created_by_principal_id,
    )
    db.add(appointment)
    db.flush()

    db.add_all(
        [
            Booking(
                appointment_id=appointment.id,
                service_id=service.id,
                employee_id=step.stylist_id,
                status=BookingStatus.BOOKED,
                price_paid=service.selling_price,
                original_price=service.selling_price,
                start_time=start,
                end_time=end,
            )
            for step, service, start, end in planned
        ]
    )
    db.flush()
    logger.info('Appointment %s booked through wizard (%d services)', appointment.id, len(planned))
    return appointment


def save_appointment(
    db: Session,
    *,
    customer_id: int | None,
    day: date | None,
    time_value: str,
    service_ids: Sequence[int],
    package_ids: Sequence[int] = (),
    stylists: Mapping[int, int] | None = None,
    package_stylists: Mapping[int, int] | None = None,
    customized_services: Mapping[int, list[int]] | None = None,
    discount_type: DiscountType = DiscountType.NONE,
    discount_value: Decimal = Decimal('0'),
    payment_method: str | None = None,
    notes: str | None = None,
    location_id: int | None = None,
    adjusted_prices: Mapping[int, Decimal] | None = None,
    created_by_principal_id: int | None = None,
) -> Appointment:
    """Create a confirmed appointment and its bookings.

    Standalone services run back to back from the start time, each package
    holds its stylist for its whole duration, and extra services added to a
    customizable package follow the package.
    """
    if not day:
        raise ValueError('Date and customer are required')
    _ensure_customer(db, customer_id)
    if not service_ids and not package_ids:
        raise ValueError('Please select at least one service or package')

    stylists = stylists or {}
    package_stylists = package_stylists or {}
    customized_services = customized_services or {}
    adjusted_prices = adjusted_prices or {}

    extra_ids = [sid for ids in customized_services.values() for sid in ids]
    services = load_service_infos(db, list(service_ids) + extra_ids)
    packages = load_package_infos(db, package_ids)
    for service_id in service_ids:
        if service_id not in services:
            raise ValueError(f'Service {service_id} not found')
    for package_id in package_ids:
        if package_id not in packages:
            raise ValueError(f'Package {package_id} not found')

    start_time = datetime.combine(day, parse_hhmm(time_value))
    total_duration = get_total_duration(service_ids, package_ids, services, packages, customized_services)
    end_time = start_time + timedelta(minutes=total_duration)

    subtotal = sum((services[sid].selling_price for sid in service_ids), Decimal('0'))
    subtotal += sum(
        (calculate_package_price(packages[pid], customized_services.get(pid, []), services) for pid in package_ids),
        Decimal('0'),
    )
    total_price = apply_discount(subtotal, discount_type, discount_value)

    rows: list[dict] = []
    cursor = start_time
    for service_id in service_ids:
        service = services[service_id]
        end = cursor + timedelta(minutes=service.duration)
        price = adjusted_prices.get(service_id, service.selling_price)
        rows.append(
            dict(
                service_id=service_id,
                employee_id=stylists.get(service_id),
                price_paid=price,
                original_price=service.selling_price,
                start_time=cursor,
                end_time=end,
            )
        )
        cursor = end

    for package_id in package_ids:
        pkg = packages[package_id]
        employee_id = package_stylists.get(package_id)
        package_minutes = get_total_duration([], [package_id], services, {package_id: pkg})
        package_end = cursor + timedelta(minutes=package_minutes)
        rows.append(
            dict(
                package_id=package_id,
                employee_id=employee_id,
                price_paid=pkg.price,
                original_price=pkg.price,
                start_time=cursor,
                end_time=package_end,
            )
        )
        for ps in pkg.package_services:
            rows.append(
                dict(
                    service_id=ps.service.id,
                    package_id=package_id,
                    employee_id=stylists.get(ps.service.id, employee_id),
                    # Paid through the package booking.
                    price_paid=Decimal('0'),
                    original_price=get_service_price_in_package(ps.service.id, pkg),
                )
            )
        cursor = package_end
        if pkg.is_customizable:
            for extra_id in customized_services.get(package_id, []):
                if pkg.includes(extra_id) or extra_id not in services:
                    continue
                extra = services[extra_id]
                end = cursor + timedelta(minutes=extra.duration)
                rows.append(
                    dict(
                        service_id=extra_id,
                        package_id=package_id,
                        employee_id=stylists.get(extra_id, employee_id),
                        price_paid=adjusted_prices.get(extra_id, extra.selling_price),
                        original_price=extra.selling_price,
                        start_time=cursor,
                        end_time=end,
                    )
                )
                cursor = end

    _check_conflicts(db, [(r.get('employee_id'), r.get('start_time'), r.get('end_time')) for r in rows], day)

    appointment = Appointment(
        customer_id=customer_id,
        location_id=location_id,
        start_time=start_time,
        end_time=end_time,
        status=AppointmentStatus.CONFIRMED,
        total_duration=total_duration,
        number_of_bookings=len(service_ids) + len(package_ids),
        subtotal=money(subtotal),
        discount_type=discount_type,
        discount_value=discount_value,
        total_price=money(total_price),
        original_total_price=money(total_price),
        payment_method=payment_method,
        notes=notes.strip() if notes and notes.strip() else None,
        created_by_principal_id=created_by_principal_id,
    )
    db.add(appointment)
    db.flush()
    db.add_all([Booking(appointment_id=appointment.id, status=BookingStatus.CONFIRMED, **row) for row in rows])
    db.flush()
    logger.info('Appointment %s saved for customer %s (%d bookings)', appointment.id, customer_id, len(rows))
    return appointment


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise ValueError('Appointment not found')
    return appointment


def update_appointment_status(db: Session, *, appointment_id: int, status: AppointmentStatus) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if status == appointment.status:
        return appointment
    if status not in APPOINTMENT_TRANSITIONS[appointment.status]:
        raise ValueError(f'Cannot move appointment from {appointment.status.value} to {status.value}')

    appointment.status = status
    bookings = db.execute(select(Booking).where(Booking.appointment_id == appointment_id)).scalars().all()
    if status == AppointmentStatus.CANCELED:
        for booking in bookings:
            booking.status = BookingStatus.CANCELED
    elif status == AppointmentStatus.CONFIRMED:
        for booking in bookings:
            if booking.status == BookingStatus.BOOKED:
                booking.status = BookingStatus.CONFIRMED
    elif status == AppointmentStatus.COMPLETED:
        for booking in bookings:
            if booking.status != BookingStatus.CANCELED:
                booking.status = BookingStatus.COMPLETED
    db.flush()
    return appointment


def cancel_appointment(db: Session, *, appointment_id: int) -> Appointment:
    return update_appointment_status(db, appointment_id=appointment_id, status=AppointmentStatus.CANCELED)


def appointment_detail(db: Session, appointment_id: int) -> dict:
    appointment = get_appointment(db, appointment_id)
    rows = db.execute(
        select(Booking, Service.name, Package.name, Employee.name)
        .outerjoin(Service, Service.id == Booking.service_id)
        .outerjoin(Package, Package.id == Booking.package_id)
        .outerjoin(Employee, Employee.id == Booking.employee_id)
        .where(Booking.appointment_id == appointment_id)
        .order_by(Booking.id.asc())
    ).all()
    customer = db.get(Customer, appointment.customer_id)
    return {
        'id': appointment.id,
        'customer_id': appointment.customer_id,
        'customer_name': customer.full_name if customer else None,
        'location_id': appointment.location_id,
        'start_time': appointment.start_time,
        'end_time': appointment.end_time,
        'status': appointment.status.value,
        'total_duration': appointment.total_duration,
        'subtotal': appointment.subtotal,
        'total_price': appointment.total_price,
        'notes': appointment.notes,
        'bookings': [
            {
                'id': booking.id,
                'service_id': booking.service_id,
                'service_name': service_name,
                'package_id': booking.package_id,
                'package_name': package_name,
                'employee_id': booking.employee_id,
                'employee_name': employee_name,
                'status': booking.status.value,
                'price_paid': booking.price_paid,
                'original_price': booking.original_price,
                'start_time': booking.start_time,
                'end_time': booking.end_time,
            }
            for booking, service_name, package_name, employee_name in rows
        ],
    }


def list_appointments_for_date(db: Session, *, day: date, location_id: int | None = None) -> list[dict]:
    day_start = datetime.combine(day, time.min)
    query = (
        select(Appointment, Customer.full_name)
        .join(Customer, Customer.id == Appointment.customer_id)
        .where(Appointment.start_time >= day_start, Appointment.start_time < day_start + timedelta(days=1))
        .order_by(Appointment.start_time.asc())
    )
    if location_id:
        query = query.where(Appointment.location_id == location_id)
    return [
        {
            'id': appointment.id,
            'customer_id': appointment.customer_id,
            'customer_name': customer_name,
            'start_time': appointment.start_time,
            'end_time': appointment.end_time,
            'status': appointment.status.value,
            'total_price': appointment.total_price,
        }
        for appointment, customer_name in db.execute(query).all()
    ]


def list_customer_appointments(db: Session, *, customer_id: int, upcoming_only: bool = False) -> list[Appointment]:
    query = select(Appointment).where(Appointment.customer_id == customer_id)
    if upcoming_only:
        query = query.where(
            Appointment.start_time >= datetime.now(),
            Appointment.status.not_in([AppointmentStatus.CANCELED, AppointmentStatus.NOSHOW]),
        )
        query = query.order_by(Appointment.start_time.asc())
    else:
        query = query.order_by(Appointment.start_time.desc())
    return db.execute(query).scalars().all()
