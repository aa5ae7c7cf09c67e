from __future__ import annotations

import csv
from datetime import date
from io import StringIO

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.auth import Principal, Role, require_role
from app.db import get_db
from app.dependencies import get_client_ip
from app.schemas import CommissionRulesUpdate, PayRunAdjustment, PayRunCreate, PayRunStatusUpdate
from app.security.csrf import verify_csrf
from app.services.audit_service import log_audit
from app.services.commission_math_service import CommissionSlab
from app.services.payroll_service import (
    add_adjustment,
    create_pay_run,
    list_pay_runs,
    pay_run_summary,
    set_flat_rules,
    set_tiered_slabs,
    update_pay_run_status,
)
from app.services.report_service import (
    daily_revenue,
    financial_summary,
    inventory_status,
    revenue_by_payment_method,
    sales_by_employee,
    top_services,
)

router = APIRouter(prefix='/reports', tags=['reports'])
admin_access = require_role(Role.ADMIN, Role.MANAGER)


def _check_range(from_date: date, to_date: date) -> None:
    if to_date < from_date:
        raise HTTPException(status_code=400, detail='Invalid date filter')


@router.get('/summary')
def summary(from_date: date, to_date: date, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    _check_range(from_date, to_date)
    return {
        'summary': financial_summary(db, from_date=from_date, to_date=to_date),
        'payment_methods': revenue_by_payment_method(db, from_date=from_date, to_date=to_date),
        'top_services': top_services(db, from_date=from_date, to_date=to_date),
        'employees': sales_by_employee(db, from_date=from_date, to_date=to_date),
    }


@router.get('/daily-revenue')
def daily(from_date: date, to_date: date, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    _check_range(from_date, to_date)
    return daily_revenue(db, from_date=from_date, to_date=to_date)


@router.get('/daily-revenue/export.csv')
def daily_csv(
    from_date: date,
    to_date: date,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    _check_range(from_date, to_date)
    rows = daily_revenue(db, from_date=from_date, to_date=to_date)

    sio = StringIO()
    writer = csv.writer(sio)
    writer.writerow(['Date', 'Appointments', 'Revenue'])
    for row in rows:
        writer.writerow([row['date'].isoformat(), row['appointments'], row['revenue']])

    log_audit(
        db,
        actor_principal_id=principal.id,
        action='DAILY_REVENUE_EXPORTED_CSV',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'from_date': from_date.isoformat(), 'to_date': to_date.isoformat(), 'rows': len(rows)},
    )
    db.commit()
    return StreamingResponse(
        iter([sio.getvalue()]),
        media_type='text/csv',
        headers={'Content-Disposition': f'attachment; filename=revenue-{from_date}-{to_date}.csv'},
    )


@router.get('/inventory')
def inventory(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return inventory_status(db)


@router.post('/employees/{employee_id}/commission')
def commission_rules(
    employee_id: int,
    payload: CommissionRulesUpdate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        set_flat_rules(db, employee_id=employee_id, rules=payload.flat_rules)
        set_tiered_slabs(
            db,
            employee_id=employee_id,
            slabs=[CommissionSlab(**slab.model_dump()) for slab in payload.slabs],
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'employee_id': employee_id, 'flat_rules': len(payload.flat_rules), 'slabs': len(payload.slabs)}


@router.get('/pay-runs')
def pay_runs(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return list_pay_runs(db)


@router.post('/pay-runs')
def new_pay_run(
    payload: PayRunCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        run = create_pay_run(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='PAY_RUN_CREATED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'pay_run_id': run.id, 'supplementary': run.is_supplementary},
    )
    db.commit()
    return pay_run_summary(db, pay_run_id=run.id)


@router.get('/pay-runs/{pay_run_id}')
def pay_run(pay_run_id: int, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        return pay_run_summary(db, pay_run_id=pay_run_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post('/pay-runs/{pay_run_id}/adjustments')
def pay_run_adjustment(
    pay_run_id: int,
    payload: PayRunAdjustment,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        item = add_adjustment(db, pay_run_id=pay_run_id, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': item.id, 'amount': item.amount, 'compensation_type': item.compensation_type.value}


@router.post('/pay-runs/{pay_run_id}/status')
def pay_run_status(
    pay_run_id: int,
    payload: PayRunStatusUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        run = update_pay_run_status(db, pay_run_id=pay_run_id, status=payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='PAY_RUN_STATUS_CHANGED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'pay_run_id': run.id, 'status': run.status.value},
    )
    db.commit()
    return {'id': run.id, 'status': run.status.value, 'paid_date': run.paid_date}
