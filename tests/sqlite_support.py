from __future__ import annotations

from datetime import time
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.models import (
    Base,
    CommissionType,
    Customer,
    Employee,
    EmployeeLocation,
    EmployeeSkill,
    Location,
    RecurringShift,
    Service,
)


def new_session() -> Session:
    engine = create_engine('sqlite://')
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)()


def make_location(db: Session, name: str = 'Main Street', service_tax_id: int | None = None) -> Location:
    location = Location(name=name, service_tax_id=service_tax_id, active=True)
    db.add(location)
    db.flush()
    return location


def make_customer(db: Session, name: str = 'Priya', phone: str | None = None, wallet_balance: int = 0) -> Customer:
    customer = Customer(full_name=name, phone_number=phone, wallet_balance=wallet_balance)
    db.add(customer)
    db.flush()
    return customer


def make_service(db: Session, name: str, duration: int, price: str) -> Service:
    service = Service(name=name, duration=duration, selling_price=Decimal(price), active=True)
    db.add(service)
    db.flush()
    return service


def make_employee(
    db: Session,
    name: str,
    *,
    location: Location,
    skills: list[Service] = (),
    hourly_rate: str = '0',
    commission_type: CommissionType = CommissionType.NONE,
    weekly_hours: tuple[time, time] | None = (time(9, 0), time(18, 0)),
) -> Employee:
    employee = Employee(
        name=name,
        hourly_rate=Decimal(hourly_rate),
        commission_type=commission_type,
        can_perform_services=True,
    )
    db.add(employee)
    db.flush()
    db.add(EmployeeLocation(employee_id=employee.id, location_id=location.id))
    for service in skills:
        db.add(EmployeeSkill(employee_id=employee.id, service_id=service.id))
    if weekly_hours:
        start, end = weekly_hours
        for dow in range(7):
            db.add(
                RecurringShift(
                    employee_id=employee.id,
                    location_id=location.id,
                    day_of_week=dow,
                    start_time=start,
                    end_time=end,
                )
            )
    db.flush()
    return employee
