from __future__ import annotations

import unittest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from app.models import PurchaseOrderItem, PurchaseOrderStatus
from app.services.inventory_service import create_item, create_supplier
from app.services.purchase_order_service import (
    auto_invoice_number,
    cancel_purchase_order,
    create_purchase_order,
    export_purchase_order_csv,
    generate_draft_orders,
    get_purchase_order_detail,
    list_purchase_orders,
    mark_ordered,
    purchase_order_total,
    receive_purchase_order,
    reorder_quantity,
)
from sqlite_support import new_session


class PurchaseOrderMathTests(unittest.TestCase):
    def test_reorder_quantity_fills_to_maximum(self) -> None:
        self.assertEqual(reorder_quantity(SimpleNamespace(quantity=Decimal('3'), max_quantity=Decimal('10'))), Decimal('7'))
        self.assertEqual(reorder_quantity(SimpleNamespace(quantity=Decimal('12'), max_quantity=Decimal('10'))), Decimal('0'))
        self.assertEqual(reorder_quantity(SimpleNamespace(quantity=None, max_quantity=None)), Decimal('0'))

    def test_total_includes_line_tax(self) -> None:
        lines = [
            SimpleNamespace(quantity=Decimal('2'), unit_price=Decimal('100.00'), tax_rate=Decimal('18')),
            SimpleNamespace(quantity=Decimal('3'), unit_price=Decimal('33.33'), tax_rate=None),
        ]
        self.assertEqual(purchase_order_total(lines), Decimal('335.99'))

    def test_auto_invoice_number(self) -> None:
        self.assertEqual(auto_invoice_number(datetime(2026, 3, 2, 9, 5, 7)), 'AUTO-20260302-090507')


class PurchaseOrderDatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.wholesale = create_supplier(self.db, name='Beauty Wholesale')
        self.gloves_co = create_supplier(self.db, name='Glove Co')
        self.dye = create_item(
            self.db,
            name='Hair Dye',
            quantity='1',
            minimum_quantity='2',
            max_quantity='10',
            unit_price='250',
            supplier_id=self.wholesale.id,
        )
        self.gloves = create_item(
            self.db,
            name='Gloves',
            quantity='5',
            minimum_quantity='5',
            max_quantity='50',
            unit_price='4',
            supplier_id=self.gloves_co.id,
        )
        self.towels = create_item(self.db, name='Towels', quantity='0', minimum_quantity='10', max_quantity='40')
        self.foil = create_item(
            self.db, name='Foil', quantity='0', minimum_quantity='0', max_quantity='0', supplier_id=self.wholesale.id
        )

    def tearDown(self) -> None:
        self.db.close()

    def _lines(self, po_id: int) -> list[PurchaseOrderItem]:
        return self.db.query(PurchaseOrderItem).filter(PurchaseOrderItem.purchase_order_id == po_id).all()

    def test_generate_one_draft_per_supplier(self) -> None:
        created = generate_draft_orders(self.db, created_by_principal_id=None)
        self.assertEqual([po.supplier_id for po in created], [self.wholesale.id, self.gloves_co.id])
        self.assertTrue(all(po.status == PurchaseOrderStatus.DRAFT for po in created))
        self.assertTrue(all(po.invoice_number.startswith('AUTO-') for po in created))

        # Towels have no supplier and Foil has nothing to reorder.
        dye_lines = self._lines(created[0].id)
        self.assertEqual([(l.item_id, l.quantity) for l in dye_lines], [(self.dye.id, Decimal('9'))])
        glove_lines = self._lines(created[1].id)
        self.assertEqual([(l.item_id, l.quantity) for l in glove_lines], [(self.gloves.id, Decimal('45'))])

    def test_lifecycle_receives_into_stock(self) -> None:
        po = create_purchase_order(
            self.db,
            supplier_id=self.wholesale.id,
            lines=[
                {'item_id': self.dye.id, 'quantity': '6', 'unit_price': '250', 'tax_rate': '18'},
                {'item_id': self.gloves.id, 'quantity': '10', 'unit_price': '4'},
            ],
            created_by_principal_id=None,
            invoice_number=' INV-1 ',
        )
        self.assertEqual(po.invoice_number, 'INV-1')
        with self.assertRaises(ValueError):
            receive_purchase_order(self.db, purchase_order_id=po.id)

        mark_ordered(self.db, purchase_order_id=po.id)
        self.assertEqual(po.status, PurchaseOrderStatus.ORDERED)
        with self.assertRaises(ValueError):
            mark_ordered(self.db, purchase_order_id=po.id)

        dye_line = next(l for l in self._lines(po.id) if l.item_id == self.dye.id)
        receive_purchase_order(self.db, purchase_order_id=po.id, received_quantities={dye_line.id: Decimal('4')})
        self.assertEqual(po.status, PurchaseOrderStatus.RECEIVED)
        self.assertEqual(self.dye.quantity, Decimal('5'))
        self.assertEqual(self.gloves.quantity, Decimal('15'))
        with self.assertRaises(ValueError):
            cancel_purchase_order(self.db, purchase_order_id=po.id)

    def test_detail_and_export(self) -> None:
        po = create_purchase_order(
            self.db,
            supplier_id=self.wholesale.id,
            lines=[{'item_id': self.dye.id, 'quantity': '2', 'unit_price': '250', 'tax_rate': '18'}],
            created_by_principal_id=None,
        )
        detail = get_purchase_order_detail(self.db, purchase_order_id=po.id)
        self.assertEqual(detail['supplier_name'], 'Beauty Wholesale')
        self.assertEqual(detail['total'], Decimal('590.00'))

        exported = export_purchase_order_csv(self.db, purchase_order_id=po.id).splitlines()
        self.assertEqual(exported[0], 'Item,Unit,Quantity,Unit Price,Tax %,Line Total')
        self.assertTrue(exported[1].startswith('Hair Dye,unit,'))
        self.assertEqual(exported[-1], 'Total,,,,,590.00')

        listed = list_purchase_orders(self.db, status=PurchaseOrderStatus.DRAFT)
        self.assertEqual([row['id'] for row in listed], [po.id])

    def test_invalid_orders(self) -> None:
        with self.assertRaises(ValueError):
            create_purchase_order(self.db, supplier_id=self.wholesale.id, lines=[], created_by_principal_id=None)
        with self.assertRaises(ValueError):
            create_purchase_order(
                self.db, supplier_id=self.wholesale.id, lines=[{'item_id': 999, 'quantity': '1'}], created_by_principal_id=None
            )
        with self.assertRaises(ValueError):
            create_purchase_order(
                self.db,
                supplier_id=self.wholesale.id,
                lines=[{'item_id': self.dye.id, 'quantity': '0'}],
                created_by_principal_id=None,
            )
        with self.assertRaises(ValueError):
            create_purchase_order(self.db, supplier_id=999, lines=[{'item_id': self.dye.id, 'quantity': '1'}], created_by_principal_id=None)

    def test_cancel_draft(self) -> None:
        po = create_purchase_order(
            self.db,
            supplier_id=self.wholesale.id,
            lines=[{'item_id': self.dye.id, 'quantity': '1'}],
            created_by_principal_id=None,
        )
        cancel_purchase_order(self.db, purchase_order_id=po.id)
        self.assertEqual(po.status, PurchaseOrderStatus.CANCELLED)
        with self.assertRaises(ValueError):
            mark_ordered(self.db, purchase_order_id=po.id)


if __name__ == '__main__':
    unittest.main()
