from __future__ import annotations

import unittest
from datetime import datetime
from decimal import Decimal

from app.services.commission_math_service import (
    CommissionSlab,
    flat_commission,
    hours_between,
    select_slab,
    tiered_commission,
    validate_slabs,
    wage_amount,
)

SLABS = [
    CommissionSlab(min_amount=Decimal('0'), max_amount=Decimal('10000'), percentage=Decimal('5'), order_index=0),
    CommissionSlab(min_amount=Decimal('10000.01'), max_amount=Decimal('25000'), percentage=Decimal('8'), order_index=1),
    CommissionSlab(min_amount=Decimal('25000.01'), max_amount=None, percentage=Decimal('12'), order_index=2),
]


class CommissionMathTests(unittest.TestCase):
    def test_validate_slabs_accepts_contiguous_ranges(self) -> None:
        validate_slabs(SLABS)

    def test_validate_slabs_rejects_overlap_and_bad_values(self) -> None:
        overlapping = [
            CommissionSlab(min_amount=Decimal('0'), max_amount=Decimal('5000'), percentage=Decimal('5')),
            CommissionSlab(min_amount=Decimal('5000'), max_amount=None, percentage=Decimal('8')),
        ]
        open_ended_first = [
            CommissionSlab(min_amount=Decimal('0'), max_amount=None, percentage=Decimal('5')),
            CommissionSlab(min_amount=Decimal('5000'), max_amount=None, percentage=Decimal('8')),
        ]
        for slabs in (
            overlapping,
            open_ended_first,
            [CommissionSlab(min_amount=Decimal('-1'), max_amount=None, percentage=Decimal('5'))],
            [CommissionSlab(min_amount=Decimal('10'), max_amount=Decimal('5'), percentage=Decimal('5'))],
            [CommissionSlab(min_amount=Decimal('0'), max_amount=None, percentage=Decimal('101'))],
        ):
            with self.assertRaises(ValueError):
                validate_slabs(slabs)

    def test_select_slab(self) -> None:
        self.assertEqual(select_slab(Decimal('9000'), SLABS).percentage, Decimal('5'))
        self.assertEqual(select_slab(Decimal('10000'), SLABS).percentage, Decimal('5'))
        self.assertEqual(select_slab(Decimal('12000'), SLABS).percentage, Decimal('8'))
        self.assertEqual(select_slab(Decimal('90000'), SLABS).percentage, Decimal('12'))
        self.assertIsNone(select_slab(Decimal('100'), SLABS[1:]))

    def test_flat_commission_uses_per_service_rules(self) -> None:
        lines = flat_commission(
            [(1, 10, Decimal('500')), (2, 11, Decimal('1800')), (3, None, Decimal('1900')), (4, 10, Decimal('0'))],
            {10: Decimal('10'), 11: Decimal('0')},
        )
        self.assertEqual([(l.booking_id, l.amount) for l in lines], [(1, Decimal('50.00'))])

    def test_tiered_commission_uses_slab_for_total_revenue(self) -> None:
        bookings = [(1, 10, Decimal('8000')), (2, 11, Decimal('4000.50'))]
        lines = tiered_commission(bookings, SLABS)
        self.assertEqual([l.percentage for l in lines], [Decimal('8'), Decimal('8')])
        self.assertEqual([l.amount for l in lines], [Decimal('640.00'), Decimal('320.04')])

    def test_tiered_commission_without_matching_slab(self) -> None:
        self.assertEqual(tiered_commission([(1, 10, Decimal('100'))], SLABS[1:]), [])

    def test_tiered_commission_with_period_revenue(self) -> None:
        lines = tiered_commission([(7, 10, Decimal('2000'))], SLABS, Decimal('12000'))
        self.assertEqual([(line.percentage, line.amount) for line in lines], [(Decimal('8'), Decimal('160.00'))])

    def test_wages(self) -> None:
        hours = hours_between(datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 17, 20))
        self.assertEqual(hours, Decimal('8.33'))
        self.assertEqual(wage_amount(hours, Decimal('150')), Decimal('1249.50'))
        self.assertEqual(wage_amount(hours, None), Decimal('0'))


if __name__ == '__main__':
    unittest.main()
