import argparse
from decimal import Decimal

from sqlalchemy import select

from app.db import SessionLocal, engine
from app.models import (
    Base,
    CommissionType,
    Employee,
    EmployeeLocation,
    EmployeeSkill,
    Location,
    LoyaltyProgramSettings,
    Package,
    PackageService,
    Principal,
    PrincipalRole,
    Service,
    ServiceCategory,
    TaxRate,
)
from app.security.passwords import hash_password
from app.services.schedule_service import default_week_config, set_regular_shifts

DEMO_SERVICES = [
    ('Hair', 'Haircut', 45, Decimal('500.00')),
    ('Hair', 'Hair Colour', 90, Decimal('1800.00')),
    ('Hair', 'Blow Dry', 30, Decimal('350.00')),
    ('Skin', 'Classic Facial', 60, Decimal('1200.00')),
    ('Nails', 'Manicure', 40, Decimal('450.00')),
    ('Nails', 'Pedicure', 50, Decimal('550.00')),
]

DEMO_STYLISTS = [
    ('Asha', CommissionType.FLAT, Decimal('150.00'), ['Haircut', 'Hair Colour', 'Blow Dry']),
    ('Ravi', CommissionType.TIERED, Decimal('140.00'), ['Haircut', 'Blow Dry', 'Classic Facial']),
    ('Meera', CommissionType.NONE, Decimal('130.00'), ['Manicure', 'Pedicure', 'Classic Facial']),
]


def _get_or_create_principal(db, username: str, password: str, role: PrincipalRole, **kwargs) -> None:
    existing = db.execute(select(Principal).where(Principal.username == username)).scalar_one_or_none()
    if existing:
        return
    db.add(Principal(username=username, password_hash=hash_password(password), role=role, active=True, **kwargs))


def seed(create_tables: bool = False) -> None:
    if create_tables:
        Base.metadata.create_all(engine)

    with SessionLocal() as db:
        tax = db.execute(select(TaxRate).where(TaxRate.name == 'GST')).scalar_one_or_none()
        if not tax:
            tax = TaxRate(name='GST', percentage=Decimal('18.000'), active=True)
            db.add(tax)
            db.flush()

        location = db.execute(select(Location).where(Location.name == 'Main Street')).scalar_one_or_none()
        if not location:
            location = Location(name='Main Street', address='1 Main Street', service_tax_id=tax.id, active=True)
            db.add(location)
            db.flush()

        services_by_name: dict[str, Service] = {}
        for category_name, name, duration, price in DEMO_SERVICES:
            category = db.execute(
                select(ServiceCategory).where(ServiceCategory.name == category_name)
            ).scalar_one_or_none()
            if not category:
                category = ServiceCategory(name=category_name)
                db.add(category)
                db.flush()
            service = db.execute(select(Service).where(Service.name == name)).scalar_one_or_none()
            if not service:
                service = Service(name=name, category_id=category.id, duration=duration, selling_price=price, active=True)
                db.add(service)
                db.flush()
            services_by_name[name] = service

        package = db.execute(select(Package).where(Package.name == 'Spa Day')).scalar_one_or_none()
        if not package:
            package = Package(name='Spa Day', price=Decimal('1900.00'), is_customizable=True, active=True)
            db.add(package)
            db.flush()
            for name in ('Classic Facial', 'Manicure', 'Pedicure'):
                db.add(PackageService(package_id=package.id, service_id=services_by_name[name].id))

        for name, commission_type, hourly_rate, skills in DEMO_STYLISTS:
            employee = db.execute(select(Employee).where(Employee.name == name)).scalar_one_or_none()
            if employee:
                continue
            employee = Employee(
                name=name,
                commission_type=commission_type,
                hourly_rate=hourly_rate,
                can_perform_services=True,
            )
            db.add(employee)
            db.flush()
            db.add(EmployeeLocation(employee_id=employee.id, location_id=location.id))
            for skill in skills:
                db.add(EmployeeSkill(employee_id=employee.id, service_id=services_by_name[skill].id))
            set_regular_shifts(db, employee_id=employee.id, location_id=location.id, week_config=default_week_config())
            if name == 'Asha':
                _get_or_create_principal(db, 'asha', 'stylistpass', PrincipalRole.STAFF, employee_id=employee.id)

        if not db.execute(select(LoyaltyProgramSettings.id)).first():
            db.add(
                LoyaltyProgramSettings(
                    enabled=True,
                    points_per_spend=Decimal('5'),
                    point_value=Decimal('1'),
                    min_redemption_points=100,
                    apply_to_all=True,
                    applicable_services=[],
                    applicable_packages=[],
                    points_validity_days=365,
                )
            )

        _get_or_create_principal(db, 'admin', 'adminpass', PrincipalRole.ADMIN)
        _get_or_create_principal(db, 'manager', 'managerpass', PrincipalRole.MANAGER)

        db.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description='Insert demo salon data (idempotent).')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before seeding.')
    args = parser.parse_args()
    seed(create_tables=args.create_tables)
    print('Seed data inserted/verified.')


if __name__ == '__main__':
    main()
