from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.auth import Principal, Role, require_role
from app.db import get_db
from app.dependencies import get_client_ip, get_location_scope
from app.schemas import (
    AppointmentCreate,
    AppointmentStatusUpdate,
    ApprovalUpdate,
    CustomerCreate,
    PackageCreate,
    RegularShiftsUpdate,
    ServiceCreate,
    ServiceUpdate,
    SpecificShiftCreate,
    TimeOffCreate,
)
from app.security.csrf import verify_csrf
from app.services.audit_service import appointment_history, log_audit
from app.services.availability_service import stylist_availability
from app.services.booking_service import (
    BookingConflictError,
    appointment_detail,
    get_appointment,
    list_appointments_for_date,
    save_appointment,
    update_appointment_status,
)
from app.services.catalog_service import create_package, create_service, set_package_active, update_service
from app.services.customer_service import create_customer, search_customers
from app.services.notification_service import KIND_CONFIRMATION, send_appointment_notification_stub
from app.services.schedule_service import (
    DayConfig,
    add_specific_shift,
    add_time_off,
    default_week_config,
    delete_shift,
    list_location_employees,
    parse_hhmm,
    set_regular_shifts,
    set_shift_status,
    set_time_off_status,
    weekly_schedule,
)

router = APIRouter(prefix='/staff', tags=['staff'])
staff_access = require_role(Role.ADMIN, Role.MANAGER, Role.STAFF)
admin_access = require_role(Role.ADMIN, Role.MANAGER)


@router.get('/appointments')
def appointments_for_day(
    day: date,
    location_id: int | None = Depends(get_location_scope),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return list_appointments_for_date(db, day=day, location_id=location_id)


@router.post('/appointments')
def create_appointment(
    payload: AppointmentCreate,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        appointment = save_appointment(
            db,
            customer_id=payload.customer_id,
            day=payload.day,
            time_value=payload.time,
            service_ids=payload.service_ids,
            package_ids=payload.package_ids,
            stylists=payload.stylists,
            package_stylists=payload.package_stylists,
            customized_services=payload.customized_services,
            discount_type=payload.discount_type,
            discount_value=payload.discount_value,
            payment_method=payload.payment_method,
            notes=payload.notes,
            location_id=payload.location_id,
            adjusted_prices=payload.adjusted_prices,
            created_by_principal_id=principal.id,
        )
    except BookingConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    ip = get_client_ip(request)
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='APPOINTMENT_SAVED',
        appointment_id=appointment.id,
        ip=ip,
        metadata={'services': len(payload.service_ids), 'packages': len(payload.package_ids)},
    )
    send_appointment_notification_stub(
        db, appointment=appointment, kind=KIND_CONFIRMATION, actor_principal_id=principal.id, ip=ip
    )
    db.commit()
    return appointment_detail(db, appointment.id)


@router.get('/appointments/{appointment_id}')
def appointment(appointment_id: int, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    try:
        return appointment_detail(db, appointment_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get('/appointments/{appointment_id}/history')
def appointment_audit(appointment_id: int, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        get_appointment(db, appointment_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return appointment_history(db, appointment_id=appointment_id)


@router.post('/appointments/{appointment_id}/status')
def appointment_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        updated = update_appointment_status(db, appointment_id=appointment_id, status=payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='APPOINTMENT_STATUS_CHANGED',
        appointment_id=appointment_id,
        ip=get_client_ip(request),
        metadata={'status': payload.status.value},
    )
    db.commit()
    return {'id': updated.id, 'status': updated.status.value}


@router.get('/availability')
def availability(
    day: date,
    time: str,
    location_id: int | None = Depends(get_location_scope),
    duration: int | None = None,
    exclude_appointment_id: int | None = None,
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        rows = stylist_availability(
            db,
            day=day,
            start_hhmm=time,
            location_id=location_id,
            duration_minutes=duration,
            exclude_appointment_id=exclude_appointment_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [
        {
            'id': row.id,
            'name': row.name,
            'is_available': row.is_available,
            'conflict': asdict(row.conflict) if row.conflict else None,
        }
        for row in rows
    ]


@router.get('/customers')
def customers(q: str | None = None, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [
        {
            'id': c.id,
            'full_name': c.full_name,
            'phone_number': c.phone_number,
            'email': c.email,
            'wallet_balance': c.wallet_balance,
        }
        for c in search_customers(db, query=q)
    ]


@router.post('/customers')
def add_customer(
    payload: CustomerCreate,
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        customer = create_customer(
            db, full_name=payload.full_name, phone_number=payload.phone_number, email=payload.email
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    db.commit()
    return {'id': customer.id, 'full_name': customer.full_name}


@router.post('/services')
def add_service(
    payload: ServiceCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        service = create_service(
            db,
            name=payload.name,
            duration=payload.duration,
            selling_price=payload.selling_price,
            category_id=payload.category_id,
            cost_price=payload.cost_price,
            description=payload.description,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': service.id, 'name': service.name}


@router.post('/services/{service_id}')
def edit_service(
    service_id: int,
    payload: ServiceUpdate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        service = update_service(
            db,
            service_id=service_id,
            name=payload.name,
            duration=payload.duration,
            selling_price=payload.selling_price,
            active=payload.active,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': service.id, 'name': service.name, 'active': service.active}


@router.post('/packages')
def add_package(
    payload: PackageCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        pkg = create_package(
            db,
            name=payload.name,
            price=payload.price,
            service_prices=payload.services,
            duration=payload.duration,
            is_customizable=payload.is_customizable,
            description=payload.description,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': pkg.id, 'name': pkg.name}


@router.post('/packages/{package_id}/deactivate')
def deactivate_package(
    package_id: int,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        set_package_active(db, package_id=package_id, active=False)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    db.commit()
    return {'id': package_id, 'active': False}


@router.get('/employees')
def employees(location_id: int | None = Depends(get_location_scope), _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [
        {'id': e.id, 'name': e.name, 'can_perform_services': e.can_perform_services}
        for e in list_location_employees(db, location_id=location_id)
    ]


@router.get('/schedule')
def schedule(
    week_start: date,
    location_id: int | None = Depends(get_location_scope),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    rows = weekly_schedule(db, week_start=week_start, location_id=location_id)
    return [
        {
            'employee_id': row['employee_id'],
            'employee_name': row['employee_name'],
            'days': {day: [asdict(entry) for entry in entries] for day, entries in row['days'].items()},
        }
        for row in rows
    ]


@router.get('/schedule/default-week')
def default_week(_: Principal = Depends(admin_access)):
    return {
        dow: {
            'enabled': config.enabled,
            'shifts': [{'start': s.strftime('%H:%M'), 'end': e.strftime('%H:%M')} for s, e in config.shifts],
        }
        for dow, config in default_week_config().items()
    }


@router.post('/employees/{employee_id}/regular-shifts')
def regular_shifts(
    employee_id: int,
    payload: RegularShiftsUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        week_config = {
            dow: DayConfig(
                enabled=day.enabled,
                shifts=[(parse_hhmm(s.start), parse_hhmm(s.end)) for s in day.shifts],
            )
            for dow, day in payload.days.items()
        }
        created = set_regular_shifts(
            db, employee_id=employee_id, location_id=payload.location_id, week_config=week_config
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='REGULAR_SHIFTS_SET',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'employee_id': employee_id, 'shifts': len(created)},
    )
    db.commit()
    return {'employee_id': employee_id, 'shifts': len(created)}


@router.post('/employees/{employee_id}/shifts')
def specific_shift(
    employee_id: int,
    payload: SpecificShiftCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        shift = add_specific_shift(
            db,
            employee_id=employee_id,
            location_id=payload.location_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            status=payload.status,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': shift.id, 'status': shift.status.value}


@router.post('/shifts/{shift_id}/status')
def shift_status(
    shift_id: int,
    payload: ApprovalUpdate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        shift = set_shift_status(db, shift_id=shift_id, status=payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    db.commit()
    return {'id': shift.id, 'status': shift.status.value}


@router.post('/shifts/{shift_id}/delete')
def remove_shift(
    shift_id: int,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        delete_shift(db, shift_id=shift_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    db.commit()
    return {'id': shift_id, 'deleted': True}


@router.post('/employees/{employee_id}/time-off')
def request_time_off(
    employee_id: int,
    payload: TimeOffCreate,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    if principal.role == Role.STAFF and principal.employee_id != employee_id:
        raise HTTPException(status_code=403)
    try:
        request_row = add_time_off(
            db,
            employee_id=employee_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': request_row.id, 'status': request_row.status.value}


@router.post('/time-off/{request_id}/status')
def time_off_status(
    request_id: int,
    payload: ApprovalUpdate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        request_row = set_time_off_status(db, request_id=request_id, status=payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    db.commit()
    return {'id': request_row.id, 'status': request_row.status.value}
