from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.auth import Principal, Role, assert_customer_scope, require_role
from app.db import get_db
from app.dependencies import get_client_ip, get_location_scope
from app.models import AppointmentStatus
from app.schemas import WizardProgress, WizardSubmit
from app.security.csrf import verify_csrf
from app.services.audit_service import log_audit
from app.services.availability_service import available_slots, stylists_for_service
from app.services.booking_service import (
    BookingConflictError,
    BookingWizard,
    appointment_detail,
    create_appointment_from_wizard,
    get_appointment,
    list_customer_appointments,
    make_slot_checker,
    update_appointment_status,
)
from app.services.catalog_service import list_active_packages, list_active_services, list_categories, load_service_infos
from app.services.notification_service import KIND_CANCELLATION, KIND_CONFIRMATION, send_appointment_notification_stub
from app.services.schedule_service import format_duration

router = APIRouter(prefix='/book', tags=['booking'])
booking_access = require_role(Role.ADMIN, Role.MANAGER, Role.STAFF, Role.CUSTOMER)


@router.get('/catalog')
def catalog(db: Session = Depends(get_db)):
    return {
        'categories': [{'id': c.id, 'name': c.name} for c in list_categories(db)],
        'services': [
            {
                'id': s.id,
                'name': s.name,
                'category_id': s.category_id,
                'duration': s.duration,
                'duration_label': format_duration(s.duration),
                'selling_price': s.selling_price,
                'description': s.description,
            }
            for s in list_active_services(db)
        ],
        'packages': [
            {
                'id': p.id,
                'name': p.name,
                'price': p.price,
                'duration': p.duration,
                'is_customizable': p.is_customizable,
                'service_ids': [ps.service.id for ps in p.package_services],
            }
            for p in list_active_packages(db)
        ],
    }


@router.get('/catalog/services/{service_id}/stylists')
def service_stylists(service_id: int, db: Session = Depends(get_db)):
    return [{'id': e.id, 'name': e.name} for e in stylists_for_service(db, service_id=service_id)]


@router.get('/slots')
def slots(
    service_id: int,
    stylist_id: int,
    day: date,
    location_id: int | None = Depends(get_location_scope),
    db: Session = Depends(get_db),
):
    service = load_service_infos(db, [service_id]).get(service_id)
    if not service:
        raise HTTPException(status_code=404, detail='Service not found')
    try:
        result = available_slots(
            db,
            employee_id=stylist_id,
            day=day,
            duration_minutes=service.duration,
            location_id=location_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [{'value': slot.value, 'label': slot.label} for slot in result]


def _replay_wizard(db: Session, payload: WizardProgress) -> BookingWizard:
    services = load_service_infos(db, payload.service_ids)
    missing = [sid for sid in payload.service_ids if sid not in services]
    if missing:
        raise HTTPException(status_code=404, detail=f'Service {missing[0]} not found')
    wizard = BookingWizard(
        payload.service_ids,
        slot_checker=make_slot_checker(db, services=services, location_id=payload.location_id),
    )
    try:
        for step in payload.steps:
            wizard.choose(stylist_id=step.stylist_id, day=step.day, time_value=step.time)
    except BookingConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return wizard


@router.post('/wizard')
def wizard_progress(
    payload: WizardProgress,
    _: Principal = Depends(booking_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    wizard = _replay_wizard(db, payload)
    next_service_id = wizard.current_service_id
    return {
        'current_step': wizard.current_step,
        'total_steps': wizard.total_steps,
        'is_complete': wizard.is_complete,
        'next_service_id': next_service_id,
        'stylists': (
            [{'id': e.id, 'name': e.name} for e in stylists_for_service(db, service_id=next_service_id)]
            if next_service_id is not None
            else []
        ),
    }


@router.post('/appointments')
def submit_wizard(
    payload: WizardSubmit,
    request: Request,
    principal: Principal = Depends(booking_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    customer_id = principal.customer_id if principal.role == Role.CUSTOMER else payload.customer_id
    if customer_id is None:
        raise HTTPException(status_code=400, detail='Customer is required')
    wizard = _replay_wizard(db, payload)
    try:
        appointment = create_appointment_from_wizard(
            db,
            customer_id=customer_id,
            steps=wizard.result(),
            location_id=payload.location_id,
            notes=payload.notes,
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
        action='APPOINTMENT_BOOKED',
        appointment_id=appointment.id,
        ip=ip,
        metadata={'services': len(payload.service_ids), 'source': 'wizard'},
    )
    send_appointment_notification_stub(
        db, appointment=appointment, kind=KIND_CONFIRMATION, actor_principal_id=principal.id, ip=ip
    )
    db.commit()
    return appointment_detail(db, appointment.id)


@router.get('/appointments/mine')
def my_appointments(
    upcoming_only: bool = False,
    principal: Principal = Depends(require_role(Role.CUSTOMER)),
    db: Session = Depends(get_db),
):
    if principal.customer_id is None:
        return []
    return [
        {
            'id': a.id,
            'start_time': a.start_time,
            'end_time': a.end_time,
            'status': a.status.value,
            'total_price': a.total_price,
        }
        for a in list_customer_appointments(db, customer_id=principal.customer_id, upcoming_only=upcoming_only)
    ]


@router.get('/appointments/{appointment_id}')
def appointment(
    appointment_id: int,
    principal: Principal = Depends(booking_access),
    db: Session = Depends(get_db),
):
    try:
        detail = appointment_detail(db, appointment_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    assert_customer_scope(principal, detail['customer_id'])
    return detail


@router.post('/appointments/{appointment_id}/cancel')
def cancel(
    appointment_id: int,
    request: Request,
    principal: Principal = Depends(booking_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        current = get_appointment(db, appointment_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    assert_customer_scope(principal, current.customer_id)
    try:
        updated = update_appointment_status(db, appointment_id=appointment_id, status=AppointmentStatus.CANCELED)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    ip = get_client_ip(request)
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='APPOINTMENT_CANCELED',
        appointment_id=appointment_id,
        ip=ip,
        metadata={'by_customer': principal.role == Role.CUSTOMER},
    )
    send_appointment_notification_stub(
        db, appointment=updated, kind=KIND_CANCELLATION, actor_principal_id=principal.id, ip=ip
    )
    db.commit()
    return {'id': updated.id, 'status': updated.status.value}
