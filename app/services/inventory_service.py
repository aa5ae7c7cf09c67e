from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models import InventoryItem, ItemStatus, Service, ServiceInventoryRequirement, Supplier

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def _parse_quantity(raw: str | Decimal | int | None, *, field: str) -> Decimal:
    try:
        value = Decimal(str(raw if raw is not None else '0'))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f'Invalid {field}') from exc
    if value < 0:
        raise ValueError(f'{field} cannot be negative')
    return value


def is_low_stock(item: InventoryItem) -> bool:
    return (item.quantity or ZERO) <= (item.minimum_quantity or ZERO)


def get_item(db: Session, item_id: int) -> InventoryItem:
    item = db.get(InventoryItem, item_id)
    if not item:
        raise ValueError('Inventory item not found')
    return item


def list_items(db: Session, *, include_inactive: bool = False) -> list[InventoryItem]:
    query = select(InventoryItem).order_by(InventoryItem.name.asc())
    if not include_inactive:
        query = query.where(InventoryItem.status == ItemStatus.ACTIVE)
    return db.execute(query).scalars().all()


def list_low_stock_items(db: Session) -> list[InventoryItem]:
    return db.execute(
        select(InventoryItem)
        .where(
            InventoryItem.status == ItemStatus.ACTIVE,
            InventoryItem.quantity <= InventoryItem.minimum_quantity,
        )
        .order_by(InventoryItem.name.asc())
    ).scalars().all()


def create_item(
    db: Session,
    *,
    name: str,
    unit_of_quantity: str = 'unit',
    quantity: str | Decimal = '0',
    minimum_quantity: str | Decimal = '0',
    max_quantity: str | Decimal = '0',
    unit_price: str | Decimal = '0',
    supplier_id: int | None = None,
    category: str | None = None,
) -> InventoryItem:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Item name is required')
    minimum = _parse_quantity(minimum_quantity, field='minimum quantity')
    maximum = _parse_quantity(max_quantity, field='maximum quantity')
    if maximum and maximum < minimum:
        raise ValueError('Maximum quantity cannot be below minimum quantity')
    if supplier_id is not None and not db.get(Supplier, supplier_id):
        raise ValueError('Supplier not found')
    item = InventoryItem(
        name=clean,
        unit_of_quantity=(unit_of_quantity or 'unit').strip(),
        quantity=_parse_quantity(quantity, field='quantity'),
        minimum_quantity=minimum,
        max_quantity=maximum,
        unit_price=_parse_quantity(unit_price, field='unit price'),
        supplier_id=supplier_id,
        category=category.strip() if category and category.strip() else None,
        status=ItemStatus.ACTIVE,
    )
    db.add(item)
    db.flush()
    return item


def update_item(
    db: Session,
    *,
    item_id: int,
    name: str | None = None,
    minimum_quantity: str | Decimal | None = None,
    max_quantity: str | Decimal | None = None,
    unit_price: str | Decimal | None = None,
    supplier_id: int | None = None,
    status: ItemStatus | None = None,
) -> InventoryItem:
    item = get_item(db, item_id)
    if name is not None:
        if not name.strip():
            raise ValueError('Item name is required')
        item.name = name.strip()
    if minimum_quantity is not None:
        item.minimum_quantity = _parse_quantity(minimum_quantity, field='minimum quantity')
    if max_quantity is not None:
        item.max_quantity = _parse_quantity(max_quantity, field='maximum quantity')
    if unit_price is not None:
        item.unit_price = _parse_quantity(unit_price, field='unit price')
    if supplier_id is not None:
        if not db.get(Supplier, supplier_id):
            raise ValueError('Supplier not found')
        item.supplier_id = supplier_id
    if status is not None:
        item.status = status
    db.flush()
    return item


def adjust_stock(db: Session, *, item_id: int, delta: Decimal, reason: str | None = None) -> InventoryItem:
    item = get_item(db, item_id)
    new_quantity = (item.quantity or ZERO) + delta
    if new_quantity < 0:
        raise ValueError(f'Not enough {item.name} in stock ({item.quantity} {item.unit_of_quantity})')
    item.quantity = new_quantity
    db.flush()
    logger.info('Stock for item %s adjusted by %s (%s)', item.id, delta, reason or 'no reason given')
    return item


def list_suppliers(db: Session, *, active_only: bool = True) -> list[Supplier]:
    query = select(Supplier).order_by(Supplier.name.asc())
    if active_only:
        query = query.where(Supplier.active.is_(True))
    return db.execute(query).scalars().all()


def create_supplier(
    db: Session,
    *,
    name: str,
    contact_name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Supplier:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Supplier name is required')
    supplier = Supplier(name=clean, contact_name=contact_name, email=email, phone=phone, address=address, active=True)
    db.add(supplier)
    db.flush()
    return supplier


def set_supplier_active(db: Session, *, supplier_id: int, active: bool) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise ValueError('Supplier not found')
    supplier.active = active
    db.flush()
    return supplier


def set_service_requirements(
    db: Session,
    *,
    service_id: int,
    requirements: Mapping[int, str | Decimal],
) -> list[ServiceInventoryRequirement]:
    if not db.get(Service, service_id):
        raise ValueError('Service not found')
    parsed = {item_id: _parse_quantity(qty, field='quantity required') for item_id, qty in requirements.items()}
    known = set(db.execute(select(InventoryItem.id).where(InventoryItem.id.in_(list(parsed)))).scalars().all())
    missing = sorted(set(parsed) - known)
    if missing:
        raise ValueError(f'Unknown inventory items: {", ".join(str(m) for m in missing)}')

    db.execute(delete(ServiceInventoryRequirement).where(ServiceInventoryRequirement.service_id == service_id))
    rows = [
        ServiceInventoryRequirement(service_id=service_id, item_id=item_id, quantity_required=qty)
        for item_id, qty in parsed.items()
        if qty > 0
    ]
    db.add_all(rows)
    db.flush()
    return rows


def consume_for_services(db: Session, *, service_ids: Iterable[int]) -> dict[int, Decimal]:
    """Take each completed service's required items out of stock.

    Stock never goes below zero; a shortfall is logged and the item is left empty.
    """
    counts: dict[int, int] = {}
    for service_id in service_ids:
        counts[service_id] = counts.get(service_id, 0) + 1
    if not counts:
        return {}

    requirements = db.execute(
        select(ServiceInventoryRequirement).where(ServiceInventoryRequirement.service_id.in_(list(counts)))
    ).scalars().all()
    needed: dict[int, Decimal] = {}
    for req in requirements:
        needed[req.item_id] = needed.get(req.item_id, ZERO) + req.quantity_required * counts[req.service_id]

    consumed: dict[int, Decimal] = {}
    for item_id, quantity in needed.items():
        item = db.get(InventoryItem, item_id)
        if not item:
            continue
        available = item.quantity or ZERO
        if quantity > available:
            logger.warning(
                'Item %s (%s) ran out: needed %s, had %s',
                item.id,
                item.name,
                quantity,
                available,
            )
        taken = min(quantity, available)
        item.quantity = available - taken
        consumed[item_id] = taken
    db.flush()
    return consumed
