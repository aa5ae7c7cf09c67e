from __future__ import annotations

import unittest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from app.services.inventory_service import (
    adjust_stock,
    consume_for_services,
    create_item,
    create_supplier,
    is_low_stock,
    list_low_stock_items,
    set_service_requirements,
)
from sqlite_support import make_service, new_session


class LowStockTests(unittest.TestCase):
    def test_at_or_below_minimum_is_low(self) -> None:
        self.assertTrue(is_low_stock(SimpleNamespace(quantity=Decimal('2'), minimum_quantity=Decimal('2'))))
        self.assertTrue(is_low_stock(SimpleNamespace(quantity=None, minimum_quantity=Decimal('1'))))
        self.assertFalse(is_low_stock(SimpleNamespace(quantity=Decimal('3'), minimum_quantity=Decimal('2'))))


class InventoryDatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.supplier = create_supplier(self.db, name='Beauty Wholesale')
        self.shampoo = create_item(
            self.db,
            name='Shampoo',
            unit_of_quantity='ml',
            quantity='1000',
            minimum_quantity='200',
            max_quantity='2000',
            supplier_id=self.supplier.id,
        )
        self.dye = create_item(
            self.db,
            name='Hair Dye',
            unit_of_quantity='tube',
            quantity='1',
            minimum_quantity='2',
            max_quantity='10',
            supplier_id=self.supplier.id,
        )
        self.cut = make_service(self.db, 'Haircut', 45, '500.00')
        self.colour = make_service(self.db, 'Hair Colour', 90, '1800.00')

    def tearDown(self) -> None:
        self.db.close()

    def test_item_validation(self) -> None:
        with self.assertRaises(ValueError):
            create_item(self.db, name='  ')
        with self.assertRaises(ValueError):
            create_item(self.db, name='Foil', quantity='-1')
        with self.assertRaises(ValueError):
            create_item(self.db, name='Foil', minimum_quantity='5', max_quantity='2')
        with self.assertRaises(ValueError):
            create_item(self.db, name='Foil', supplier_id=999)

    def test_low_stock_listing(self) -> None:
        self.assertEqual([item.name for item in list_low_stock_items(self.db)], ['Hair Dye'])

    def test_adjust_stock_rejects_negative_result(self) -> None:
        adjust_stock(self.db, item_id=self.shampoo.id, delta=Decimal('-250'), reason='spill')
        self.assertEqual(self.shampoo.quantity, Decimal('750'))
        with self.assertRaises(ValueError):
            adjust_stock(self.db, item_id=self.shampoo.id, delta=Decimal('-800'))

    def test_requirements_reject_unknown_items(self) -> None:
        with self.assertRaises(ValueError):
            set_service_requirements(self.db, service_id=self.cut.id, requirements={999: '1'})
        with self.assertRaises(ValueError):
            set_service_requirements(self.db, service_id=999, requirements={self.shampoo.id: '1'})

    def test_requirements_replace_previous_set(self) -> None:
        set_service_requirements(self.db, service_id=self.cut.id, requirements={self.shampoo.id: '30', self.dye.id: '1'})
        rows = set_service_requirements(self.db, service_id=self.cut.id, requirements={self.shampoo.id: '40', self.dye.id: '0'})
        self.assertEqual([(r.item_id, r.quantity_required) for r in rows], [(self.shampoo.id, Decimal('40'))])

    def test_consumption_counts_each_service(self) -> None:
        set_service_requirements(self.db, service_id=self.cut.id, requirements={self.shampoo.id: '30'})
        consumed = consume_for_services(self.db, service_ids=[self.cut.id, self.cut.id, self.colour.id])
        self.assertEqual(consumed, {self.shampoo.id: Decimal('60')})
        self.assertEqual(self.shampoo.quantity, Decimal('940'))

    @patch('app.services.inventory_service.logger')
    def test_consumption_floors_stock_at_zero(self, mock_logger) -> None:
        set_service_requirements(self.db, service_id=self.colour.id, requirements={self.dye.id: '2'})
        consumed = consume_for_services(self.db, service_ids=[self.colour.id])
        self.assertEqual(consumed, {self.dye.id: Decimal('1')})
        self.assertEqual(self.dye.quantity, Decimal('0'))
        mock_logger.warning.assert_called_once()

    def test_no_services_consumes_nothing(self) -> None:
        self.assertEqual(consume_for_services(self.db, service_ids=[]), {})


if __name__ == '__main__':
    unittest.main()
