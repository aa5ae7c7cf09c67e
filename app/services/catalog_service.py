from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Package, PackageService, Service, ServiceCategory


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    duration: int
    selling_price: Decimal


@dataclass(frozen=True)
class PackageServiceInfo:
    service: ServiceInfo
    package_selling_price: Decimal | None = None


@dataclass(frozen=True)
class PackageInfo:
    id: int
    name: str
    price: Decimal
    duration: int | None
    is_customizable: bool
    package_services: tuple[PackageServiceInfo, ...] = ()

    def includes(self, service_id: int) -> bool:
        return any(ps.service.id == service_id for ps in self.package_services)


def _parse_money(raw: str | Decimal | int | float | None, *, field: str) -> Decimal:
    try:
        value = Decimal(str(raw)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f'Invalid {field}') from exc
    if value < 0:
        raise ValueError(f'{field} cannot be negative')
    return value


def get_total_duration(
    service_ids: Iterable[int],
    package_ids: Iterable[int],
    services: Mapping[int, ServiceInfo],
    packages: Mapping[int, PackageInfo],
    customized_services: Mapping[int, list[int]] | None = None,
) -> int:
    customized_services = customized_services or {}
    total = 0

    for service_id in service_ids:
        service = services.get(service_id)
        if service:
            total += service.duration or 0

    for package_id in package_ids:
        pkg = packages.get(package_id)
        if not pkg:
            continue
        if pkg.duration:
            total += pkg.duration
        else:
            total += sum(ps.service.duration or 0 for ps in pkg.package_services)

        for extra_id in customized_services.get(package_id, []):
            if pkg.includes(extra_id):
                continue
            extra = services.get(extra_id)
            if extra:
                total += extra.duration or 0

    return total


def calculate_package_price(
    pkg: PackageInfo,
    custom_service_ids: Iterable[int],
    services: Mapping[int, ServiceInfo],
) -> Decimal:
    price = pkg.price or Decimal('0')
    for service_id in custom_service_ids:
        if pkg.includes(service_id):
            continue
        service = services.get(service_id)
        if service:
            price += service.selling_price or Decimal('0')
    return price


def get_service_price_in_package(service_id: int, pkg: PackageInfo | None) -> Decimal:
    if pkg is None:
        return Decimal('0')
    for ps in pkg.package_services:
        if ps.service.id != service_id:
            continue
        if ps.package_selling_price is not None:
            return ps.package_selling_price
        return ps.service.selling_price or Decimal('0')
    return Decimal('0')


def _service_info(row: Service) -> ServiceInfo:
    return ServiceInfo(id=row.id, name=row.name, duration=row.duration, selling_price=row.selling_price)


def load_service_infos(db: Session, service_ids: Iterable[int] | None = None) -> dict[int, ServiceInfo]:
    query = select(Service)
    if service_ids is not None:
        ids = list(set(service_ids))
        if not ids:
            return {}
        query = query.where(Service.id.in_(ids))
    return {row.id: _service_info(row) for row in db.execute(query).scalars().all()}


def load_package_infos(db: Session, package_ids: Iterable[int] | None = None) -> dict[int, PackageInfo]:
    query = select(Package)
    if package_ids is not None:
        ids = list(set(package_ids))
        if not ids:
            return {}
        query = query.where(Package.id.in_(ids))
    packages = db.execute(query).scalars().all()
    if not packages:
        return {}

    rows = db.execute(
        select(PackageService, Service)
        .join(Service, Service.id == PackageService.service_id)
        .where(PackageService.package_id.in_([p.id for p in packages]))
        .order_by(PackageService.package_id.asc(), Service.name.asc())
    ).all()
    included: dict[int, list[PackageServiceInfo]] = {}
    for link, service in rows:
        included.setdefault(link.package_id, []).append(
            PackageServiceInfo(service=_service_info(service), package_selling_price=link.package_selling_price)
        )

    return {
        p.id: PackageInfo(
            id=p.id,
            name=p.name,
            price=p.price,
            duration=p.duration,
            is_customizable=p.is_customizable,
            package_services=tuple(included.get(p.id, [])),
        )
        for p in packages
    }


def list_active_services(db: Session, *, category_id: int | None = None) -> list[Service]:
    query = select(Service).where(Service.active.is_(True)).order_by(Service.name.asc())
    if category_id:
        query = query.where(Service.category_id == category_id)
    return db.execute(query).scalars().all()


def list_active_packages(db: Session) -> list[PackageInfo]:
    ids = db.execute(select(Package.id).where(Package.active.is_(True))).scalars().all()
    infos = load_package_infos(db, ids)
    return sorted(infos.values(), key=lambda p: p.name.lower())


def list_categories(db: Session) -> list[ServiceCategory]:
    return db.execute(select(ServiceCategory).order_by(ServiceCategory.name.asc())).scalars().all()


def create_category(db: Session, *, name: str) -> ServiceCategory:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Category name is required')
    existing = db.execute(select(ServiceCategory).where(ServiceCategory.name == clean)).scalar_one_or_none()
    if existing:
        return existing
    category = ServiceCategory(name=clean)
    db.add(category)
    db.flush()
    return category


def create_service(
    db: Session,
    *,
    name: str,
    duration: int,
    selling_price: str | Decimal,
    category_id: int | None = None,
    cost_price: str | Decimal | None = None,
    description: str | None = None,
) -> Service:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Service name is required')
    if duration <= 0:
        raise ValueError('Duration must be greater than zero')
    service = Service(
        name=clean,
        duration=duration,
        selling_price=_parse_money(selling_price, field='selling price'),
        cost_price=_parse_money(cost_price, field='cost price') if cost_price not in (None, '') else None,
        category_id=category_id,
        description=description.strip() if description and description.strip() else None,
        active=True,
    )
    db.add(service)
    db.flush()
    return service


def update_service(
    db: Session,
    *,
    service_id: int,
    name: str | None = None,
    duration: int | None = None,
    selling_price: str | Decimal | None = None,
    active: bool | None = None,
) -> Service:
    service = db.get(Service, service_id)
    if not service:
        raise ValueError('Service not found')
    if name is not None:
        if not name.strip():
            raise ValueError('Service name is required')
        service.name = name.strip()
    if duration is not None:
        if duration <= 0:
            raise ValueError('Duration must be greater than zero')
        service.duration = duration
    if selling_price is not None:
        service.selling_price = _parse_money(selling_price, field='selling price')
    if active is not None:
        service.active = active
    db.flush()
    return service


def create_package(
    db: Session,
    *,
    name: str,
    price: str | Decimal,
    service_prices: Mapping[int, Decimal | None],
    duration: int | None = None,
    is_customizable: bool = False,
    description: str | None = None,
) -> Package:
    clean = (name or '').strip()
    if not clean:
        raise ValueError('Package name is required')
    if not service_prices:
        raise ValueError('A package needs at least one service')
    if duration is not None and duration <= 0:
        raise ValueError('Duration must be greater than zero')

    known = set(
        db.execute(select(Service.id).where(Service.id.in_(list(service_prices)))).scalars().all()
    )
    missing = sorted(set(service_prices) - known)
    if missing:
        raise ValueError(f'Unknown services: {", ".join(str(m) for m in missing)}')

    pkg = Package(
        name=clean,
        price=_parse_money(price, field='price'),
        duration=duration,
        is_customizable=is_customizable,
        description=description,
        active=True,
    )
    db.add(pkg)
    db.flush()
    db.add_all(
        [
            PackageService(
                package_id=pkg.id,
                service_id=service_id,
                package_selling_price=(
                    _parse_money(override, field='package service price') if override is not None else None
                ),
            )
            for service_id, override in service_prices.items()
        ]
    )
    db.flush()
    return pkg


def set_package_active(db: Session, *, package_id: int, active: bool) -> Package:
    pkg = db.get(Package, package_id)
    if not pkg:
        raise ValueError('Package not found')
    pkg.active = active
    db.flush()
    return pkg
