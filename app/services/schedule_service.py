from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models import (
    ApprovalStatus,
    Employee,
    EmployeeLocation,
    EmployeeStatus,
    RecurringShift,
    Shift,
    TimeOffRequest,
)

logger = logging.getLogger(__name__)

# (label, day_of_week) with 0 = Sunday, listed Monday first.
DAYS: list[tuple[str, int]] = [
    ('Monday', 1),
    ('Tuesday', 2),
    ('Wednesday', 3),
    ('Thursday', 4),
    ('Friday', 5),
    ('Saturday', 6),
    ('Sunday', 0),
]

ENTRY_REGULAR = 'regular'
ENTRY_OVERRIDE = 'override'
ENTRY_TIME_OFF = 'time_off'


@dataclass
class DayConfig:
    enabled: bool
    shifts: list[tuple[time, time]] = field(default_factory=list)


@dataclass(frozen=True)
class ShiftWindow:
    start: datetime
    end: datetime
    source: str


@dataclass(frozen=True)
class ScheduleEntry:
    kind: str
    start: datetime | None = None
    end: datetime | None = None
    status: str | None = None
    shift_id: int | None = None


def day_of_week(value: date) -> int:
    return (value.weekday() + 1) % 7


def parse_hhmm(raw: str) -> time:
    value = (raw or '').strip()
    try:
        hours_text, minutes_text = value.split(':', 1)
        if not (hours_text.isdigit() and minutes_text.isdigit()) or len(hours_text) > 2 or len(minutes_text) != 2:
            raise ValueError(value)
        return time(int(hours_text), int(minutes_text))
    except ValueError as exc:
        raise ValueError(f'Invalid time: {raw!r}') from exc


def format_duration(minutes: int) -> str:
    hours, remaining = divmod(minutes, 60)
    if hours == 0:
        return f'{minutes} min'
    if remaining == 0:
        return f'{hours} hr'
    return f'{hours} hr {remaining} min'


def default_day_config(dow: int) -> DayConfig:
    if dow == 0:
        return DayConfig(enabled=False, shifts=[(time(9, 0), time(18, 0))])
    end = time(17, 0) if dow == 6 else time(18, 0)
    return DayConfig(enabled=True, shifts=[(time(9, 0), end)])


def default_week_config() -> dict[int, DayConfig]:
    return {dow: default_day_config(dow) for _, dow in DAYS}


def _validate_day_shifts(dow: int, shifts: list[tuple[time, time]]) -> None:
    ordered = sorted(shifts)
    for start, end in ordered:
        if end <= start:
            raise ValueError(f'Shift end must be after start on day {dow}')
    for (_, prev_end), (next_start, _) in zip(ordered, ordered[1:]):
        if next_start < prev_end:
            raise ValueError(f'Shifts overlap on day {dow}')


def _ensure_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee:
        raise ValueError('Employee not found')
    return employee


def set_regular_shifts(
    db: Session,
    *,
    employee_id: int,
    location_id: int,
    week_config: dict[int, DayConfig],
) -> list[RecurringShift]:
    _ensure_employee(db, employee_id)
    for dow, config in week_config.items():
        if dow < 0 or dow > 6:
            raise ValueError(f'Invalid day of week: {dow}')
        if config.enabled:
            _validate_day_shifts(dow, config.shifts)

    db.execute(
        delete(RecurringShift).where(
            RecurringShift.employee_id == employee_id,
            RecurringShift.location_id == location_id,
        )
    )
    created = [
        RecurringShift(
            employee_id=employee_id,
            location_id=location_id,
            day_of_week=dow,
            start_time=start,
            end_time=end,
        )
        for dow, config in sorted(week_config.items())
        if config.enabled
        for start, end in sorted(config.shifts)
    ]
    db.add_all(created)
    db.flush()
    logger.info('Regular shifts replaced for employee %s at location %s (%d shifts)', employee_id, location_id, len(created))
    return created


def add_specific_shift(
    db: Session,
    *,
    employee_id: int,
    location_id: int,
    start_time: datetime,
    end_time: datetime,
    status: ApprovalStatus = ApprovalStatus.APPROVED,
) -> Shift:
    _ensure_employee(db, employee_id)
    if end_time <= start_time:
        raise ValueError('Shift end must be after start')
    if start_time.date() != end_time.date():
        raise ValueError('A shift must start and end on the same day')
    shift = Shift(
        employee_id=employee_id,
        location_id=location_id,
        start_time=start_time,
        end_time=end_time,
        status=status,
        is_override=True,
    )
    db.add(shift)
    db.flush()
    return shift


def set_shift_status(db: Session, *, shift_id: int, status: ApprovalStatus) -> Shift:
    shift = db.get(Shift, shift_id)
    if not shift:
        raise ValueError('Shift not found')
    shift.status = status
    db.flush()
    return shift


def delete_shift(db: Session, *, shift_id: int) -> None:
    shift = db.get(Shift, shift_id)
    if not shift:
        raise ValueError('Shift not found')
    db.delete(shift)
    db.flush()


def add_time_off(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
    reason: str | None = None,
) -> TimeOffRequest:
    _ensure_employee(db, employee_id)
    if end_date < start_date:
        raise ValueError('Time off end date cannot be before start date')
    request = TimeOffRequest(
        employee_id=employee_id,
        start_date=start_date,
        end_date=end_date,
        reason=reason.strip() if reason and reason.strip() else None,
        status=ApprovalStatus.PENDING,
    )
    db.add(request)
    db.flush()
    return request


def set_time_off_status(db: Session, *, request_id: int, status: ApprovalStatus) -> TimeOffRequest:
    request = db.get(TimeOffRequest, request_id)
    if not request:
        raise ValueError('Time off request not found')
    request.status = status
    db.flush()
    return request


def resolve_day_windows(
    day: date,
    *,
    recurring: Iterable[tuple[time, time]],
    specific: Iterable[tuple[datetime, datetime]],
    on_time_off: bool,
) -> list[ShiftWindow]:
    """Working windows for one employee on one day.

    Approved time off wins over everything. Any specific shift on the day
    replaces the recurring pattern for that day.
    """
    if on_time_off:
        return []
    specific = sorted(specific)
    if specific:
        return [ShiftWindow(start=start, end=end, source=ENTRY_OVERRIDE) for start, end in specific]
    return [
        ShiftWindow(
            start=datetime.combine(day, start),
            end=datetime.combine(day, end),
            source=ENTRY_REGULAR,
        )
        for start, end in sorted(recurring)
    ]


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def has_approved_time_off(db: Session, *, employee_id: int, day: date) -> bool:
    found = db.execute(
        select(TimeOffRequest.id).where(
            TimeOffRequest.employee_id == employee_id,
            TimeOffRequest.status == ApprovalStatus.APPROVED,
            TimeOffRequest.start_date <= day,
            TimeOffRequest.end_date >= day,
        ).limit(1)
    ).first()
    return found is not None


def shift_windows_for_date(
    db: Session,
    *,
    employee_id: int,
    day: date,
    location_id: int | None = None,
) -> list[ShiftWindow]:
    recurring_query = select(RecurringShift.start_time, RecurringShift.end_time).where(
        RecurringShift.employee_id == employee_id,
        RecurringShift.day_of_week == day_of_week(day),
    )
    day_start, day_end = _day_bounds(day)
    specific_query = select(Shift.start_time, Shift.end_time).where(
        Shift.employee_id == employee_id,
        Shift.status != ApprovalStatus.DECLINED,
        Shift.start_time >= day_start,
        Shift.start_time < day_end,
    )
    if location_id:
        recurring_query = recurring_query.where(RecurringShift.location_id == location_id)
        specific_query = specific_query.where(Shift.location_id == location_id)

    return resolve_day_windows(
        day,
        recurring=[(row.start_time, row.end_time) for row in db.execute(recurring_query).all()],
        specific=[(row.start_time, row.end_time) for row in db.execute(specific_query).all()],
        on_time_off=has_approved_time_off(db, employee_id=employee_id, day=day),
    )


def list_location_employees(db: Session, *, location_id: int | None, service_staff_only: bool = False) -> list[Employee]:
    query = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE).order_by(Employee.name.asc())
    if location_id:
        query = query.join(EmployeeLocation, EmployeeLocation.employee_id == Employee.id).where(
            EmployeeLocation.location_id == location_id
        )
    if service_staff_only:
        query = query.where(Employee.can_perform_services.is_(True))
    return db.execute(query).scalars().all()


def weekly_schedule(db: Session, *, week_start: date, location_id: int | None = None) -> list[dict]:
    days = [week_start + timedelta(days=offset) for offset in range(7)]
    employees = list_location_employees(db, location_id=location_id)
    if not employees:
        return []
    employee_ids = [e.id for e in employees]

    recurring_query = select(RecurringShift).where(RecurringShift.employee_id.in_(employee_ids))
    range_start, _ = _day_bounds(days[0])
    _, range_end = _day_bounds(days[-1])
    specific_query = select(Shift).where(
        Shift.employee_id.in_(employee_ids),
        Shift.status != ApprovalStatus.DECLINED,
        Shift.start_time >= range_start,
        Shift.start_time < range_end,
    )
    if location_id:
        recurring_query = recurring_query.where(RecurringShift.location_id == location_id)
        specific_query = specific_query.where(Shift.location_id == location_id)
    time_off_query = select(TimeOffRequest).where(
        TimeOffRequest.employee_id.in_(employee_ids),
        TimeOffRequest.status == ApprovalStatus.APPROVED,
        TimeOffRequest.start_date <= days[-1],
        TimeOffRequest.end_date >= days[0],
    )

    recurring_by_key: dict[tuple[int, int], list[RecurringShift]] = {}
    for row in db.execute(recurring_query).scalars().all():
        recurring_by_key.setdefault((row.employee_id, row.day_of_week), []).append(row)
    specific_by_key: dict[tuple[int, date], list[Shift]] = {}
    for row in db.execute(specific_query.order_by(Shift.start_time.asc())).scalars().all():
        specific_by_key.setdefault((row.employee_id, row.start_time.date()), []).append(row)
    time_off = db.execute(time_off_query).scalars().all()

    rows = []
    for employee in employees:
        day_entries: dict[str, list[ScheduleEntry]] = {}
        for day in days:
            entries: list[ScheduleEntry] = []
            if any(t.employee_id == employee.id and t.start_date <= day <= t.end_date for t in time_off):
                entries.append(ScheduleEntry(kind=ENTRY_TIME_OFF))
            else:
                specific = specific_by_key.get((employee.id, day), [])
                if specific:
                    entries.extend(
                        ScheduleEntry(
                            kind=ENTRY_OVERRIDE,
                            start=shift.start_time,
                            end=shift.end_time,
                            status=shift.status.value,
                            shift_id=shift.id,
                        )
                        for shift in specific
                    )
                else:
                    entries.extend(
                        ScheduleEntry(
                            kind=ENTRY_REGULAR,
                            start=datetime.combine(day, shift.start_time),
                            end=datetime.combine(day, shift.end_time),
                        )
                        for shift in sorted(
                            recurring_by_key.get((employee.id, day_of_week(day)), []),
                            key=lambda s: s.start_time,
                        )
                    )
            day_entries[day.isoformat()] = entries
        rows.append({'employee_id': employee.id, 'employee_name': employee.name, 'days': day_entries})
    return rows
