from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from app.models import AppointmentStatus
from app.services.booking_service import cancel_appointment, save_appointment
from app.services.inventory_service import create_item
from app.services.report_service import (
    daily_revenue,
    financial_summary,
    inventory_status,
    revenue_by_payment_method,
    sales_by_employee,
    top_services,
)
from sqlite_support import make_customer, make_employee, make_location, make_service, new_session

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
WEDNESDAY = date(2026, 3, 4)


class ReportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        location = make_location(self.db)
        customer = make_customer(self.db)
        cut = make_service(self.db, 'Haircut', 45, '500.00')
        colour = make_service(self.db, 'Hair Colour', 90, '1800.00')
        asha = make_employee(self.db, 'Asha', location=location)
        ravi = make_employee(self.db, 'Ravi', location=location)

        def paid(day, time_value, stylists, method):
            appointment = save_appointment(
                self.db,
                customer_id=customer.id,
                day=day,
                time_value=time_value,
                service_ids=list(stylists),
                stylists=stylists,
            )
            appointment.status = AppointmentStatus.PAID
            appointment.payment_method = method
            return appointment

        paid(MONDAY, '10:00', {cut.id: asha.id, colour.id: ravi.id}, 'card')
        paid(TUESDAY, '10:00', {cut.id: asha.id}, 'cash')
        canceled = save_appointment(
            self.db,
            customer_id=customer.id,
            day=TUESDAY,
            time_value='14:00',
            service_ids=[colour.id],
            stylists={colour.id: asha.id},
        )
        cancel_appointment(self.db, appointment_id=canceled.id)
        self.db.flush()

    def tearDown(self) -> None:
        self.db.close()

    def test_financial_summary_counts_paid_appointments(self) -> None:
        summary = financial_summary(self.db, from_date=MONDAY, to_date=TUESDAY)
        self.assertEqual(summary['appointments'], 2)
        self.assertEqual(summary['gross_sales'], Decimal('2800.00'))
        self.assertEqual(summary['collected'], Decimal('2800.00'))
        self.assertEqual(summary['total_discounts'], Decimal('0'))
        self.assertEqual(summary['average_ticket'], Decimal('1400.00'))

    def test_invalid_range(self) -> None:
        with self.assertRaises(ValueError):
            financial_summary(self.db, from_date=TUESDAY, to_date=MONDAY)

    def test_daily_revenue_fills_empty_days(self) -> None:
        rows = daily_revenue(self.db, from_date=MONDAY, to_date=WEDNESDAY)
        self.assertEqual(
            [(r['date'], r['appointments'], r['revenue']) for r in rows],
            [(MONDAY, 1, Decimal('2300.00')), (TUESDAY, 1, Decimal('500.00')), (WEDNESDAY, 0, Decimal('0'))],
        )

    def test_revenue_by_payment_method(self) -> None:
        rows = revenue_by_payment_method(self.db, from_date=MONDAY, to_date=TUESDAY)
        self.assertEqual([(r['payment_method'], r['revenue']) for r in rows], [('card', Decimal('2300.00')), ('cash', Decimal('500.00'))])

    def test_top_services_and_employee_sales(self) -> None:
        services = top_services(self.db, from_date=MONDAY, to_date=TUESDAY)
        self.assertEqual(
            [(r['service_name'], r['bookings'], r['revenue']) for r in services],
            [('Haircut', 2, Decimal('1000')), ('Hair Colour', 1, Decimal('1800'))],
        )
        employees = sales_by_employee(self.db, from_date=MONDAY, to_date=TUESDAY)
        self.assertEqual(
            [(r['employee_name'], r['revenue']) for r in employees],
            [('Ravi', Decimal('1800')), ('Asha', Decimal('1000'))],
        )

    def test_inventory_status(self) -> None:
        create_item(self.db, name='Shampoo', quantity='10', minimum_quantity='2', unit_price='150')
        create_item(self.db, name='Foil', quantity='0', minimum_quantity='5', unit_price='20')
        status = inventory_status(self.db)
        self.assertEqual(status['items'], 2)
        self.assertEqual(status['low_stock'], 1)
        self.assertEqual(status['out_of_stock'], 1)
        self.assertEqual(status['stock_value'], Decimal('1500.00'))
        self.assertEqual([i['name'] for i in status['low_stock_items']], ['Foil'])


if __name__ == '__main__':
    unittest.main()
