from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models import Customer


def _normalize_phone(raw: str | None) -> str | None:
    digits = ''.join(ch for ch in (raw or '') if ch.isdigit() or ch == '+')
    return digits or None


def create_customer(db: Session, *, full_name: str, phone_number: str | None = None, email: str | None = None) -> Customer:
    name = (full_name or '').strip()
    if not name:
        raise ValueError('Customer name is required')
    phone = _normalize_phone(phone_number)
    if phone:
        existing = db.execute(select(Customer).where(Customer.phone_number == phone)).scalar_one_or_none()
        if existing:
            raise ValueError(f'A customer with phone {phone} already exists')
    customer = Customer(
        full_name=name,
        phone_number=phone,
        email=email.strip().lower() if email and email.strip() else None,
        wallet_balance=0,
    )
    db.add(customer)
    db.flush()
    return customer


def search_customers(db: Session, *, query: str | None = None, limit: int = 50) -> list[Customer]:
    stmt = select(Customer).order_by(Customer.full_name.asc()).limit(limit)
    term = (query or '').strip()
    if term:
        pattern = f'%{term.lower()}%'
        stmt = stmt.where(or_(Customer.full_name.ilike(pattern), Customer.phone_number.like(f'%{term}%')))
    return db.execute(stmt).scalars().all()
