from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import AuditLog, AuthEvent, Principal


def log_auth_event(
    db: Session,
    *,
    attempted_username: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    principal_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    db.add(
        AuthEvent(
            attempted_username=attempted_username,
            success=success,
            failure_reason=failure_reason,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
        )
    )


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    appointment_id: int | None,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            action=action,
            appointment_id=appointment_id,
            ip=ip,
            meta=metadata or {},
        )
    )


def appointment_history(db: Session, *, appointment_id: int) -> list[dict]:
    """Audit trail for one appointment, oldest first, with actor usernames."""
    rows = db.execute(
        select(AuditLog, Principal.username)
        .outerjoin(Principal, Principal.id == AuditLog.actor_principal_id)
        .where(AuditLog.appointment_id == appointment_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
    ).all()
    return [
        {
            'id': entry.id,
            'action': entry.action,
            'actor': username,
            'ip': entry.ip,
            'metadata': entry.meta,
            'created_at': entry.created_at,
        }
        for entry, username in rows
    ]
