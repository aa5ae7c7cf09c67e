from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.models import (
    Appointment,
    AppointmentStatus,
    Booking,
    BookingStatus,
    Employee,
    EmployeeSkill,
    EmployeeStatus,
)
from app.services.schedule_service import (
    ShiftWindow,
    has_approved_time_off,
    list_location_employees,
    parse_hhmm,
    shift_windows_for_date,
)

INACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.CANCELED, AppointmentStatus.NOSHOW)


@dataclass(frozen=True)
class TimeSlot:
    value: str
    label: str
    start: datetime


@dataclass(frozen=True)
class BusyInterval:
    booking_id: int
    appointment_id: int
    start: datetime
    end: datetime
    status: str


@dataclass(frozen=True)
class StylistAvailability:
    id: int
    name: str
    is_available: bool
    conflict: BusyInterval | None = None


def slot_label(value: datetime) -> str:
    hour = value.hour % 12 or 12
    period = 'PM' if value.hour >= 12 else 'AM'
    return f'{hour}:{value.minute:02d} {period}'


def generate_time_slots(
    windows: Iterable[ShiftWindow],
    duration_minutes: int,
    interval_minutes: int | None = None,
) -> list[TimeSlot]:
    """Walk each window in fixed steps and keep every start the service fits after."""
    interval = interval_minutes or settings.slot_interval_minutes
    if duration_minutes <= 0:
        raise ValueError('Duration must be greater than zero')
    if interval <= 0:
        raise ValueError('Slot interval must be greater than zero')

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=interval)
    slots: list[TimeSlot] = []
    seen: set[datetime] = set()
    for window in sorted(windows, key=lambda w: w.start):
        current = window.start
        while current + duration <= window.end:
            if current not in seen:
                seen.add(current)
                slots.append(TimeSlot(value=current.strftime('%H:%M'), label=slot_label(current), start=current))
            current += step
    return slots


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


def busy_intervals(
    db: Session,
    *,
    employee_ids: list[int],
    day: date,
    exclude_appointment_id: int | None = None,
) -> dict[int, list[BusyInterval]]:
    if not employee_ids:
        return {}
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    query = (
        select(Booking, Appointment.status)
        .join(Appointment, Appointment.id == Booking.appointment_id)
        .where(
            Booking.employee_id.in_(employee_ids),
            Booking.start_time.is_not(None),
            Booking.end_time.is_not(None),
            Booking.start_time < day_end,
            Booking.end_time > day_start,
            Booking.status != BookingStatus.CANCELED,
            Appointment.status.not_in(INACTIVE_APPOINTMENT_STATUSES),
        )
        .order_by(Booking.start_time.asc())
    )
    if exclude_appointment_id:
        query = query.where(Booking.appointment_id != exclude_appointment_id)

    by_employee: dict[int, list[BusyInterval]] = {}
    for booking, appointment_status in db.execute(query).all():
        by_employee.setdefault(booking.employee_id, []).append(
            BusyInterval(
                booking_id=booking.id,
                appointment_id=booking.appointment_id,
                start=booking.start_time,
                end=booking.end_time,
                status=appointment_status.value,
            )
        )
    return by_employee


def first_conflict(busy: Iterable[BusyInterval], start: datetime, end: datetime) -> BusyInterval | None:
    for interval in busy:
        if overlaps(start, end, interval.start, interval.end):
            return interval
    return None


def available_slots(
    db: Session,
    *,
    employee_id: int,
    day: date,
    duration_minutes: int,
    location_id: int | None = None,
    exclude_appointment_id: int | None = None,
) -> list[TimeSlot]:
    windows = shift_windows_for_date(db, employee_id=employee_id, day=day, location_id=location_id)
    slots = generate_time_slots(windows, duration_minutes)
    busy = busy_intervals(
        db, employee_ids=[employee_id], day=day, exclude_appointment_id=exclude_appointment_id
    ).get(employee_id, [])
    duration = timedelta(minutes=duration_minutes)
    return [slot for slot in slots if first_conflict(busy, slot.start, slot.start + duration) is None]


def stylists_for_service(db: Session, *, service_id: int) -> list[Employee]:
    return db.execute(
        select(Employee)
        .join(EmployeeSkill, EmployeeSkill.employee_id == Employee.id)
        .where(
            EmployeeSkill.service_id == service_id,
            Employee.status == EmployeeStatus.ACTIVE,
            Employee.can_perform_services.is_(True),
        )
        .order_by(Employee.name.asc())
    ).scalars().all()


def stylist_availability(
    db: Session,
    *,
    day: date,
    start_hhmm: str,
    location_id: int | None,
    duration_minutes: int | None = None,
    exclude_appointment_id: int | None = None,
) -> list[StylistAvailability]:
    duration = duration_minutes or settings.default_service_duration_minutes
    start = datetime.combine(day, parse_hhmm(start_hhmm))
    end = start + timedelta(minutes=duration)

    staff = list_location_employees(db, location_id=location_id, service_staff_only=True)
    busy = busy_intervals(
        db,
        employee_ids=[e.id for e in staff],
        day=day,
        exclude_appointment_id=exclude_appointment_id,
    )

    result: list[StylistAvailability] = []
    for employee in staff:
        if has_approved_time_off(db, employee_id=employee.id, day=day):
            result.append(StylistAvailability(id=employee.id, name=employee.name, is_available=False))
            continue
        windows = shift_windows_for_date(db, employee_id=employee.id, day=day, location_id=location_id)
        if not any(w.start <= start and end <= w.end for w in windows):
            result.append(StylistAvailability(id=employee.id, name=employee.name, is_available=False))
            continue
        conflict = first_conflict(busy.get(employee.id, []), start, end)
        result.append(
            StylistAvailability(
                id=employee.id,
                name=employee.name,
                is_available=conflict is None,
                conflict=conflict,
            )
        )
    return result
