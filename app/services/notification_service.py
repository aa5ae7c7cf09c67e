from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Appointment, AppointmentStatus, Customer
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)

KIND_CONFIRMATION = 'CONFIRMATION'
KIND_REMINDER = 'REMINDER'
KIND_CANCELLATION = 'CANCELLATION'


def send_appointment_notification_stub(
    db: Session,
    *,
    appointment: Appointment,
    kind: str,
    actor_principal_id: int | None,
    ip: str | None,
    customer_name: str | None = None,
) -> None:
    payload = {
        'kind': kind,
        'customer_id': appointment.customer_id,
        'customer_name': customer_name,
        'start_time': appointment.start_time.isoformat(),
        'status': 'STUB_SENT',
    }
    log_audit(
        db,
        actor_principal_id=actor_principal_id,
        action='APPOINTMENT_NOTIFICATION_STUB_SENT',
        appointment_id=appointment.id,
        ip=ip,
        metadata=payload,
    )
    logger.info('%s notification stub recorded for appointment %s', kind.lower(), appointment.id)


def due_reminders(db: Session, *, now: datetime, lead_hours: int) -> list[Appointment]:
    # Appointment times are salon wall-clock values.
    return db.execute(
        select(Appointment)
        .where(
            Appointment.status == AppointmentStatus.CONFIRMED,
            Appointment.reminder_sent_at.is_(None),
            Appointment.start_time >= now,
            Appointment.start_time <= now + timedelta(hours=lead_hours),
        )
        .order_by(Appointment.start_time.asc())
    ).scalars().all()


def process_reminders(db: Session, *, now: datetime, lead_hours: int, dry_run: bool = False) -> int:
    appointments = due_reminders(db, now=now, lead_hours=lead_hours)
    for appointment in appointments:
        if dry_run:
            logger.info('Would remind appointment %s at %s', appointment.id, appointment.start_time)
            continue
        customer = db.get(Customer, appointment.customer_id)
        send_appointment_notification_stub(
            db,
            appointment=appointment,
            kind=KIND_REMINDER,
            actor_principal_id=None,
            ip=None,
            customer_name=customer.full_name if customer else None,
        )
        appointment.reminder_sent_at = datetime.now(tz=timezone.utc)
    db.flush()
    return len(appointments)
