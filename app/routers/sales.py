from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.auth import Principal, Role, assert_customer_scope, require_role
from app.db import get_db
from app.dependencies import get_client_ip, get_templates
from app.schemas import CheckoutRequest, CouponCreate, LoyaltySettingsUpdate, MembershipCreate, MembershipSale
from app.security.csrf import verify_csrf
from app.services.audit_service import log_audit
from app.services.booking_service import get_appointment
from app.services.checkout_service import (
    bill_context,
    complete_checkout,
    create_coupon,
    list_tax_rates,
    quote_checkout,
)
from app.services.loyalty_service import (
    check_loyalty_balance,
    create_membership,
    get_settings,
    sell_membership,
    update_settings,
)

router = APIRouter(prefix='/sales', tags=['sales'])
staff_access = require_role(Role.ADMIN, Role.MANAGER, Role.STAFF)
admin_access = require_role(Role.ADMIN, Role.MANAGER)


@router.post('/appointments/{appointment_id}/quote')
def quote(
    appointment_id: int,
    payload: CheckoutRequest,
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        breakdown = quote_checkout(
            db,
            appointment_id=appointment_id,
            coupon_code=payload.coupon_code,
            tax_id=payload.tax_id,
            points_to_redeem=payload.points_to_redeem,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return asdict(breakdown)


@router.post('/appointments/{appointment_id}/checkout')
def checkout(
    appointment_id: int,
    payload: CheckoutRequest,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        appointment = complete_checkout(
            db,
            appointment_id=appointment_id,
            payment_method=payload.payment_method or '',
            actor_principal_id=principal.id,
            ip=get_client_ip(request),
            coupon_code=payload.coupon_code,
            tax_id=payload.tax_id,
            points_to_redeem=payload.points_to_redeem,
        )
    except ValueError as exc:
        status_code = 404 if 'not found' in str(exc) else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    db.commit()
    return {
        'id': appointment.id,
        'status': appointment.status.value,
        'total_price': appointment.total_price,
        'points_earned': appointment.points_earned,
        'points_redeemed': appointment.points_redeemed,
    }


@router.get('/appointments/{appointment_id}/bill')
def bill(
    appointment_id: int,
    request: Request,
    principal: Principal = Depends(require_role(Role.ADMIN, Role.MANAGER, Role.STAFF, Role.CUSTOMER)),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    try:
        appointment = get_appointment(db, appointment_id)
        assert_customer_scope(principal, appointment.customer_id)
        context = bill_context(db, appointment_id=appointment_id)
    except ValueError as exc:
        status_code = 404 if 'not found' in str(exc) else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    return templates.TemplateResponse(request, 'bill.html', context)


@router.get('/customers/{customer_id}/loyalty')
def loyalty_balance(
    customer_id: int,
    principal: Principal = Depends(require_role(Role.ADMIN, Role.MANAGER, Role.STAFF, Role.CUSTOMER)),
    db: Session = Depends(get_db),
):
    assert_customer_scope(principal, customer_id)
    try:
        return check_loyalty_balance(db, customer_id=customer_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get('/loyalty/settings')
def loyalty_settings(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    row = get_settings(db)
    if row is None:
        return {'enabled': False}
    return {
        'enabled': row.enabled,
        'points_per_spend': row.points_per_spend,
        'point_value': row.point_value,
        'min_redemption_points': row.min_redemption_points,
        'min_billing_amount': row.min_billing_amount,
        'apply_to_all': row.apply_to_all,
        'applicable_services': row.applicable_services,
        'applicable_packages': row.applicable_packages,
        'points_validity_days': row.points_validity_days,
        'max_redemption_type': row.max_redemption_type.value if row.max_redemption_type else None,
        'max_redemption_value': row.max_redemption_value,
    }


@router.post('/loyalty/settings')
def save_loyalty_settings(
    payload: LoyaltySettingsUpdate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        update_settings(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='LOYALTY_SETTINGS_UPDATED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'enabled': payload.enabled},
    )
    db.commit()
    return {'ok': True}


@router.post('/memberships')
def add_membership(
    payload: MembershipCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        membership = create_membership(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': membership.id, 'name': membership.name}


@router.post('/memberships/sell')
def sell(
    payload: MembershipSale,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        sold = sell_membership(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='MEMBERSHIP_SOLD',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'customer_id': payload.customer_id, 'membership_id': payload.membership_id},
    )
    db.commit()
    return {'id': sold.id, 'start_date': sold.start_date, 'end_date': sold.end_date}


@router.post('/coupons')
def add_coupon(
    payload: CouponCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        coupon = create_coupon(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    db.commit()
    return {'id': coupon.id, 'code': coupon.code}


@router.get('/tax-rates')
def tax_rates(_: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [{'id': t.id, 'name': t.name, 'percentage': t.percentage} for t in list_tax_rates(db)]
