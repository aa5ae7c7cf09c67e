from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from app.models import DiscountType, MembershipStatus
from app.services.loyalty_service import (
    active_membership_terms,
    add_months,
    apply_points,
    check_loyalty_balance,
    create_membership,
    expire_memberships,
    points_expired,
    sell_membership,
    update_settings,
    wallet_balance,
)
from sqlite_support import make_customer, new_session

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class LoyaltyPureTests(unittest.TestCase):
    def test_add_months_clamps_to_month_end(self) -> None:
        self.assertEqual(add_months(date(2026, 1, 31), 1), date(2026, 2, 28))
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2026, 11, 15), 3), date(2027, 2, 15))
        self.assertEqual(add_months(date(2026, 3, 2), 12), date(2027, 3, 2))

    def test_points_expire_after_validity_window(self) -> None:
        recent = SimpleNamespace(last_used=datetime(2026, 1, 1, tzinfo=timezone.utc))
        stale = SimpleNamespace(last_used=datetime(2025, 1, 1))
        never = SimpleNamespace(last_used=None)
        self.assertFalse(points_expired(recent, 365, now=NOW))
        self.assertTrue(points_expired(stale, 365, now=NOW))
        self.assertFalse(points_expired(never, 365, now=NOW))
        self.assertFalse(points_expired(stale, None, now=NOW))


class LoyaltyDatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.customer = make_customer(self.db, wallet_balance=250)

    def tearDown(self) -> None:
        self.db.close()

    def test_settings_validation(self) -> None:
        with self.assertRaises(ValueError):
            update_settings(self.db, enabled=True, points_per_spend=Decimal('-1'))
        with self.assertRaises(ValueError):
            update_settings(self.db, enabled=True, points_per_spend=Decimal('5'), point_value=Decimal('0'))
        with self.assertRaises(ValueError):
            update_settings(
                self.db,
                enabled=True,
                points_per_spend=Decimal('5'),
                max_redemption_type=DiscountType.PERCENTAGE,
                max_redemption_value=Decimal('120'),
            )

    def test_settings_are_a_single_row(self) -> None:
        first = update_settings(self.db, enabled=True, points_per_spend=Decimal('5'))
        second = update_settings(self.db, enabled=False, points_per_spend=Decimal('2'), min_redemption_points=50)
        self.assertEqual(first.id, second.id)
        self.assertFalse(second.enabled)
        self.assertEqual(second.min_redemption_points, 50)

    def test_balance_check_messages(self) -> None:
        result = check_loyalty_balance(self.db, customer_id=self.customer.id)
        self.assertFalse(result['eligible'])
        self.assertEqual(result['message'], 'Loyalty program is not enabled')

        update_settings(self.db, enabled=True, points_per_spend=Decimal('5'), min_redemption_points=300)
        result = check_loyalty_balance(self.db, customer_id=self.customer.id)
        self.assertFalse(result['eligible'])
        self.assertEqual(result['balance'], 250)

        update_settings(self.db, enabled=True, points_per_spend=Decimal('5'), min_redemption_points=100)
        self.assertTrue(check_loyalty_balance(self.db, customer_id=self.customer.id)['eligible'])

    def test_expired_points_read_as_zero(self) -> None:
        update_settings(self.db, enabled=True, points_per_spend=Decimal('5'), points_validity_days=30)
        self.customer.last_used = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(wallet_balance(self.db, self.customer, now=NOW), 0)
        self.assertEqual(wallet_balance(self.db, self.customer, now=datetime(2026, 1, 15, tzinfo=timezone.utc)), 250)

    def test_apply_points(self) -> None:
        self.assertEqual(apply_points(self.db, customer=self.customer, redeemed=100, earned=40), 190)
        self.assertIsNotNone(self.customer.last_used)
        with self.assertRaises(ValueError):
            apply_points(self.db, customer=self.customer, redeemed=500, earned=0)

    def test_membership_sale_and_expiry(self) -> None:
        membership = create_membership(
            self.db,
            name='Gold',
            discount_type=DiscountType.FIXED,
            discount_value=Decimal('200'),
            price=Decimal('2999'),
            validity_months=6,
            applicable_services=[1, 2],
        )
        sold = sell_membership(
            self.db, customer_id=self.customer.id, membership_id=membership.id, start_date=date(2025, 8, 31)
        )
        self.assertEqual(sold.end_date, date(2026, 2, 28))
        self.assertEqual(sold.amount_paid, Decimal('2999'))

        terms = active_membership_terms(self.db, customer_id=self.customer.id, on=date(2026, 2, 1))
        self.assertEqual([(t.name, t.applicable_services) for t in terms], [('Gold', (1, 2))])
        self.assertEqual(active_membership_terms(self.db, customer_id=self.customer.id, on=date(2026, 3, 2)), [])

        self.assertEqual(expire_memberships(self.db, today=date(2026, 3, 2)), 1)
        self.assertEqual(sold.status, MembershipStatus.EXPIRED)

    def test_membership_validation(self) -> None:
        with self.assertRaises(ValueError):
            create_membership(self.db, name='', discount_type=DiscountType.FIXED, discount_value=Decimal('1'))
        with self.assertRaises(ValueError):
            create_membership(
                self.db, name='Bad', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('101')
            )
        with self.assertRaises(ValueError):
            create_membership(
                self.db, name='Bad', discount_type=DiscountType.FIXED, discount_value=Decimal('1'), validity_months=0
            )


if __name__ == '__main__':
    unittest.main()
