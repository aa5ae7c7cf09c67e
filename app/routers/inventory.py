from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.auth import Principal, Role, require_role
from app.db import get_db
from app.dependencies import get_client_ip
from app.models import InventoryItem, PurchaseOrderStatus
from app.schemas import (
    InventoryItemCreate,
    InventoryItemUpdate,
    PurchaseOrderCreate,
    PurchaseOrderReceive,
    ServiceRequirements,
    StockAdjustment,
    SupplierCreate,
)
from app.security.csrf import verify_csrf
from app.services.audit_service import log_audit
from app.services.inventory_service import (
    adjust_stock,
    create_item,
    create_supplier,
    is_low_stock,
    list_items,
    list_low_stock_items,
    list_suppliers,
    set_service_requirements,
    set_supplier_active,
    update_item,
)
from app.services.purchase_order_service import (
    cancel_purchase_order,
    create_purchase_order,
    export_purchase_order_csv,
    generate_draft_orders,
    get_purchase_order_detail,
    list_purchase_orders,
    mark_ordered,
    receive_purchase_order,
)

router = APIRouter(prefix='/inventory', tags=['inventory'])
staff_access = require_role(Role.ADMIN, Role.MANAGER, Role.STAFF)
admin_access = require_role(Role.ADMIN, Role.MANAGER)


def _item_row(item: InventoryItem) -> dict:
    return {
        'id': item.id,
        'name': item.name,
        'category': item.category,
        'unit_of_quantity': item.unit_of_quantity,
        'quantity': item.quantity,
        'minimum_quantity': item.minimum_quantity,
        'max_quantity': item.max_quantity,
        'unit_price': item.unit_price,
        'supplier_id': item.supplier_id,
        'status': item.status.value,
        'is_low_stock': is_low_stock(item),
    }


@router.get('/items')
def items(include_inactive: bool = False, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [_item_row(item) for item in list_items(db, include_inactive=include_inactive)]


@router.get('/items/low-stock')
def low_stock(_: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [_item_row(item) for item in list_low_stock_items(db)]


@router.post('/items')
def add_item(
    payload: InventoryItemCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        item = create_item(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return _item_row(item)


@router.post('/items/{item_id}')
def edit_item(
    item_id: int,
    payload: InventoryItemUpdate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        item = update_item(db, item_id=item_id, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return _item_row(item)


@router.post('/items/{item_id}/adjust')
def adjust(
    item_id: int,
    payload: StockAdjustment,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        item = adjust_stock(db, item_id=item_id, delta=payload.delta, reason=payload.reason)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='STOCK_ADJUSTED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'item_id': item_id, 'delta': str(payload.delta), 'reason': payload.reason},
    )
    db.commit()
    return _item_row(item)


@router.get('/suppliers')
def suppliers(_: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [
        {'id': s.id, 'name': s.name, 'contact_name': s.contact_name, 'email': s.email, 'phone': s.phone}
        for s in list_suppliers(db)
    ]


@router.post('/suppliers')
def add_supplier(
    payload: SupplierCreate,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        supplier = create_supplier(db, **payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'id': supplier.id, 'name': supplier.name}


@router.post('/suppliers/{supplier_id}/deactivate')
def deactivate_supplier(
    supplier_id: int,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        set_supplier_active(db, supplier_id=supplier_id, active=False)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    db.commit()
    return {'id': supplier_id, 'active': False}


@router.post('/services/{service_id}/requirements')
def service_requirements(
    service_id: int,
    payload: ServiceRequirements,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    __: None = Depends(verify_csrf),
):
    try:
        rows = set_service_requirements(db, service_id=service_id, requirements=payload.requirements)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return [{'item_id': r.item_id, 'quantity_required': r.quantity_required} for r in rows]


@router.get('/purchase-orders')
def purchase_orders(
    status: PurchaseOrderStatus | None = None,
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return list_purchase_orders(db, status=status)


@router.post('/purchase-orders')
def add_purchase_order(
    payload: PurchaseOrderCreate,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        po = create_purchase_order(
            db,
            supplier_id=payload.supplier_id,
            lines=[line.model_dump() for line in payload.lines],
            created_by_principal_id=principal.id,
            invoice_number=payload.invoice_number,
            notes=payload.notes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='PURCHASE_ORDER_CREATED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'purchase_order_id': po.id, 'lines': len(payload.lines)},
    )
    db.commit()
    return {'id': po.id, 'status': po.status.value}


@router.post('/purchase-orders/generate')
def generate(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    created = generate_draft_orders(db, created_by_principal_id=principal.id)
    log_audit(
        db,
        actor_principal_id=principal.id,
        action='PURCHASE_ORDERS_GENERATED',
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'purchase_order_ids': [po.id for po in created]},
    )
    db.commit()
    return [{'id': po.id, 'supplier_id': po.supplier_id, 'invoice_number': po.invoice_number} for po in created]


@router.get('/purchase-orders/{purchase_order_id}')
def purchase_order(purchase_order_id: int, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        detail = get_purchase_order_detail(db, purchase_order_id=purchase_order_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    po = detail['order']
    return {
        'id': po.id,
        'supplier_id': po.supplier_id,
        'supplier_name': detail['supplier_name'],
        'status': po.status.value,
        'invoice_number': po.invoice_number,
        'order_date': po.order_date,
        'notes': po.notes,
        'lines': detail['lines'],
        'total': detail['total'],
    }


@router.get('/purchase-orders/{purchase_order_id}/export.csv')
def purchase_order_csv(purchase_order_id: int, _: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    try:
        content = export_purchase_order_csv(db, purchase_order_id=purchase_order_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StreamingResponse(
        iter([content]),
        media_type='text/csv',
        headers={'Content-Disposition': f'attachment; filename=purchase-order-{purchase_order_id}.csv'},
    )


def _transition(db: Session, request: Request, principal: Principal, purchase_order_id: int, action: str, fn, **kwargs):
    try:
        po = fn(db, purchase_order_id=purchase_order_id, **kwargs)
    except ValueError as exc:
        status_code = 404 if 'not found' in str(exc) else 400
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    log_audit(
        db,
        actor_principal_id=principal.id,
        action=action,
        appointment_id=None,
        ip=get_client_ip(request),
        metadata={'purchase_order_id': purchase_order_id, 'status': po.status.value},
    )
    db.commit()
    return {'id': po.id, 'status': po.status.value}


@router.post('/purchase-orders/{purchase_order_id}/order')
def place_order(
    purchase_order_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    return _transition(db, request, principal, purchase_order_id, 'PURCHASE_ORDER_ORDERED', mark_ordered)


@router.post('/purchase-orders/{purchase_order_id}/receive')
def receive(
    purchase_order_id: int,
    payload: PurchaseOrderReceive,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    return _transition(
        db,
        request,
        principal,
        purchase_order_id,
        'PURCHASE_ORDER_RECEIVED',
        receive_purchase_order,
        received_quantities=payload.received_quantities,
    )


@router.post('/purchase-orders/{purchase_order_id}/cancel')
def cancel(
    purchase_order_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    return _transition(db, request, principal, purchase_order_id, 'PURCHASE_ORDER_CANCELLED', cancel_purchase_order)
