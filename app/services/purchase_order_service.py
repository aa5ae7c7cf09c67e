from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import (
    InventoryItem,
    ItemStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    Supplier,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def auto_invoice_number(now: datetime) -> str:
    return f'AUTO-{now:%Y%m%d-%H%M%S}'


def reorder_quantity(item) -> Decimal:
    return max((item.max_quantity or ZERO) - (item.quantity or ZERO), ZERO)


def line_total(line) -> Decimal:
    tax_rate = line.tax_rate or ZERO
    return line.quantity * (line.unit_price or ZERO) * (1 + tax_rate / HUNDRED)


def purchase_order_total(lines: Iterable) -> Decimal:
    return sum((line_total(line) for line in lines), ZERO).quantize(Decimal('0.01'))


def _get_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    po = db.execute(select(PurchaseOrder).where(PurchaseOrder.id == purchase_order_id)).scalar_one_or_none()
    if po is None:
        raise ValueError('Order not found')
    return po


def _order_lines(db: Session, purchase_order_id: int) -> list[PurchaseOrderItem]:
    return db.execute(
        select(PurchaseOrderItem)
        .where(PurchaseOrderItem.purchase_order_id == purchase_order_id)
        .order_by(PurchaseOrderItem.id.asc())
    ).scalars().all()


def list_purchase_orders(db: Session, *, status: PurchaseOrderStatus | None = None, limit: int = 100) -> list[dict]:
    query = (
        select(PurchaseOrder, Supplier.name)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())
        .limit(limit)
    )
    if status:
        query = query.where(PurchaseOrder.status == status)
    rows = db.execute(query).all()
    return [
        {
            'id': po.id,
            'supplier_id': po.supplier_id,
            'supplier_name': supplier_name,
            'status': po.status.value,
            'invoice_number': po.invoice_number,
            'order_date': po.order_date,
            'ordered_at': po.ordered_at,
            'received_at': po.received_at,
            'total': purchase_order_total(_order_lines(db, po.id)),
        }
        for po, supplier_name in rows
    ]


def get_purchase_order_detail(db: Session, *, purchase_order_id: int) -> dict:
    po_row = db.execute(
        select(PurchaseOrder, Supplier.name)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .where(PurchaseOrder.id == purchase_order_id)
    ).one_or_none()
    if not po_row:
        raise ValueError('Order not found')
    po, supplier_name = po_row

    rows = db.execute(
        select(PurchaseOrderItem, InventoryItem.name, InventoryItem.unit_of_quantity)
        .join(InventoryItem, InventoryItem.id == PurchaseOrderItem.item_id)
        .where(PurchaseOrderItem.purchase_order_id == po.id)
        .order_by(InventoryItem.name.asc())
    ).all()
    lines = [
        {
            'id': line.id,
            'item_id': line.item_id,
            'item_name': item_name,
            'unit_of_quantity': unit,
            'quantity': line.quantity,
            'unit_price': line.unit_price,
            'tax_rate': line.tax_rate,
            'received_quantity': line.received_quantity,
            'line_total': line_total(line).quantize(Decimal('0.01')),
        }
        for line, item_name, unit in rows
    ]
    return {
        'order': po,
        'supplier_name': supplier_name,
        'lines': lines,
        'total': purchase_order_total(line for line, _, _ in rows),
    }


def create_purchase_order(
    db: Session,
    *,
    supplier_id: int,
    lines: list[dict],
    created_by_principal_id: int | None,
    invoice_number: str | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise ValueError('Supplier not found')
    if not lines:
        raise ValueError('Cannot create an empty order')

    item_ids = [int(line['item_id']) for line in lines]
    known = set(db.execute(select(InventoryItem.id).where(InventoryItem.id.in_(item_ids))).scalars().all())
    missing = sorted(set(item_ids) - known)
    if missing:
        raise ValueError(f'Unknown inventory items: {", ".join(str(m) for m in missing)}')

    po = PurchaseOrder(
        supplier_id=supplier_id,
        status=PurchaseOrderStatus.DRAFT,
        invoice_number=invoice_number.strip() if invoice_number and invoice_number.strip() else None,
        order_date=_now(),
        notes=notes,
        created_by_principal_id=created_by_principal_id,
    )
    db.add(po)
    db.flush()
    for line in lines:
        quantity = Decimal(str(line['quantity']))
        if quantity <= 0:
            raise ValueError('Ordered quantity must be greater than zero')
        unit_price = Decimal(str(line.get('unit_price') or '0'))
        tax_rate = Decimal(str(line.get('tax_rate') or '0'))
        if unit_price < 0 or tax_rate < 0:
            raise ValueError('Price and tax cannot be negative')
        db.add(
            PurchaseOrderItem(
                purchase_order_id=po.id,
                item_id=int(line['item_id']),
                quantity=quantity,
                unit_price=unit_price,
                tax_rate=tax_rate,
            )
        )
    db.flush()
    return po


def generate_draft_orders(db: Session, *, created_by_principal_id: int | None) -> list[PurchaseOrder]:
    now = _now()
    items = db.execute(
        select(InventoryItem)
        .where(
            InventoryItem.status == ItemStatus.ACTIVE,
            InventoryItem.quantity <= InventoryItem.minimum_quantity,
        )
        .order_by(InventoryItem.name.asc())
    ).scalars().all()

    grouped: dict[int, list[InventoryItem]] = {}
    for item in items:
        if item.supplier_id is None:
            logger.info('Skipping low stock item %s with no supplier', item.id)
            continue
        if reorder_quantity(item) <= 0:
            continue
        grouped.setdefault(item.supplier_id, []).append(item)

    created: list[PurchaseOrder] = []
    for supplier_id, supplier_items in sorted(grouped.items()):
        po = PurchaseOrder(
            supplier_id=supplier_id,
            status=PurchaseOrderStatus.DRAFT,
            invoice_number=auto_invoice_number(now),
            order_date=now,
            notes='Generated from low stock items',
            created_by_principal_id=created_by_principal_id,
        )
        db.add(po)
        db.flush()
        db.add_all(
            [
                PurchaseOrderItem(
                    purchase_order_id=po.id,
                    item_id=item.id,
                    quantity=reorder_quantity(item),
                    unit_price=item.unit_price or ZERO,
                    tax_rate=ZERO,
                )
                for item in supplier_items
            ]
        )
        created.append(po)
    db.flush()
    logger.info('Generated %d draft purchase orders', len(created))
    return created


def mark_ordered(db: Session, *, purchase_order_id: int) -> PurchaseOrder:
    po = _get_order(db, purchase_order_id)
    if po.status != PurchaseOrderStatus.DRAFT:
        raise ValueError('Only draft orders can be placed')
    if not _order_lines(db, po.id):
        raise ValueError('Cannot place an empty order')
    po.status = PurchaseOrderStatus.ORDERED
    po.ordered_at = _now()
    db.flush()
    return po


def receive_purchase_order(
    db: Session,
    *,
    purchase_order_id: int,
    received_quantities: Mapping[int, Decimal] | None = None,
) -> PurchaseOrder:
    """Receive an ordered PO into stock.

    `received_quantities` maps order line id to the quantity that arrived;
    lines not listed are received in full.
    """
    po = _get_order(db, purchase_order_id)
    if po.status != PurchaseOrderStatus.ORDERED:
        raise ValueError('Only ordered purchase orders can be received')
    received_quantities = received_quantities or {}

    for line in _order_lines(db, po.id):
        qty = received_quantities.get(line.id, line.quantity)
        if qty < 0:
            raise ValueError('Received quantity cannot be negative')
        line.received_quantity = qty
        item = db.get(InventoryItem, line.item_id)
        if item is not None:
            item.quantity = (item.quantity or ZERO) + qty
    po.status = PurchaseOrderStatus.RECEIVED
    po.received_at = _now()
    db.flush()
    logger.info('Purchase order %s received into stock', po.id)
    return po


def cancel_purchase_order(db: Session, *, purchase_order_id: int) -> PurchaseOrder:
    po = _get_order(db, purchase_order_id)
    if po.status not in (PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.ORDERED):
        raise ValueError('Only draft or ordered purchase orders can be cancelled')
    po.status = PurchaseOrderStatus.CANCELLED
    db.flush()
    return po


def export_purchase_order_csv(db: Session, *, purchase_order_id: int) -> str:
    detail = get_purchase_order_detail(db, purchase_order_id=purchase_order_id)
    sio = StringIO()
    writer = csv.writer(sio)
    writer.writerow(['Item', 'Unit', 'Quantity', 'Unit Price', 'Tax %', 'Line Total'])
    for line in detail['lines']:
        writer.writerow(
            [
                line['item_name'],
                line['unit_of_quantity'],
                line['quantity'],
                line['unit_price'],
                line['tax_rate'],
                line['line_total'],
            ]
        )
    writer.writerow(['Total', '', '', '', '', detail['total']])
    return sio.getvalue()
