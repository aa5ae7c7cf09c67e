from __future__ import annotations

import unittest
from decimal import Decimal

from app.services.catalog_service import (
    PackageInfo,
    PackageServiceInfo,
    ServiceInfo,
    calculate_package_price,
    get_service_price_in_package,
    get_total_duration,
)

CUT = ServiceInfo(id=1, name='Haircut', duration=45, selling_price=Decimal('500.00'))
FACIAL = ServiceInfo(id=2, name='Facial', duration=60, selling_price=Decimal('1200.00'))
MANI = ServiceInfo(id=3, name='Manicure', duration=40, selling_price=Decimal('450.00'))
SERVICES = {s.id: s for s in (CUT, FACIAL, MANI)}


def _package(duration: int | None = None, customizable: bool = True) -> PackageInfo:
    return PackageInfo(
        id=10,
        name='Spa Day',
        price=Decimal('1500.00'),
        duration=duration,
        is_customizable=customizable,
        package_services=(
            PackageServiceInfo(service=FACIAL, package_selling_price=Decimal('1000.00')),
            PackageServiceInfo(service=MANI),
        ),
    )


class CatalogServiceTests(unittest.TestCase):
    def test_total_duration_sums_services_and_package_services(self) -> None:
        pkg = _package()
        total = get_total_duration([1], [10], SERVICES, {10: pkg})
        self.assertEqual(total, 45 + 60 + 40)

    def test_package_duration_overrides_included_services(self) -> None:
        pkg = _package(duration=90)
        self.assertEqual(get_total_duration([], [10], SERVICES, {10: pkg}), 90)

    def test_customized_extras_add_duration_once(self) -> None:
        pkg = _package(duration=90)
        total = get_total_duration([], [10], SERVICES, {10: pkg}, {10: [1, 2]})
        # Facial is already in the package.
        self.assertEqual(total, 90 + 45)

    def test_unknown_ids_are_ignored(self) -> None:
        self.assertEqual(get_total_duration([1, 99], [77], SERVICES, {}), 45)

    def test_package_price_adds_only_new_services(self) -> None:
        pkg = _package()
        self.assertEqual(calculate_package_price(pkg, [1, 3], SERVICES), Decimal('2000.00'))

    def test_service_price_in_package(self) -> None:
        pkg = _package()
        self.assertEqual(get_service_price_in_package(2, pkg), Decimal('1000.00'))
        self.assertEqual(get_service_price_in_package(3, pkg), Decimal('450.00'))
        self.assertEqual(get_service_price_in_package(1, pkg), Decimal('0'))
        self.assertEqual(get_service_price_in_package(2, None), Decimal('0'))


if __name__ == '__main__':
    unittest.main()
