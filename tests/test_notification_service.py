from __future__ import annotations

import unittest
from datetime import date, datetime
from unittest.mock import patch

from app.models import AppointmentStatus, AuditLog
from app.services.audit_service import appointment_history
from app.services.booking_service import save_appointment
from app.services.customer_service import create_customer, search_customers
from app.services.notification_service import (
    KIND_REMINDER,
    due_reminders,
    process_reminders,
)
from sqlite_support import make_employee, make_location, make_service, new_session

NOW = datetime(2026, 3, 1, 18, 0)


class ReminderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        location = make_location(self.db)
        self.customer = create_customer(self.db, full_name='Priya Sharma', phone_number='+91 98765-43210')
        cut = make_service(self.db, 'Haircut', 45, '500.00')
        stylist = make_employee(self.db, 'Asha', location=location)

        def book(day, time_value):
            return save_appointment(
                self.db,
                customer_id=self.customer.id,
                day=day,
                time_value=time_value,
                service_ids=[cut.id],
                stylists={cut.id: stylist.id},
            )

        self.tomorrow = book(date(2026, 3, 2), '10:00')
        self.next_week = book(date(2026, 3, 9), '10:00')
        self.canceled = book(date(2026, 3, 2), '15:00')
        self.canceled.status = AppointmentStatus.CANCELED
        self.db.flush()

    def tearDown(self) -> None:
        self.db.close()

    def test_only_confirmed_appointments_in_window_are_due(self) -> None:
        self.assertEqual([a.id for a in due_reminders(self.db, now=NOW, lead_hours=24)], [self.tomorrow.id])

    def test_dry_run_records_nothing(self) -> None:
        self.assertEqual(process_reminders(self.db, now=NOW, lead_hours=24, dry_run=True), 1)
        self.assertIsNone(self.tomorrow.reminder_sent_at)
        self.assertEqual(self.db.query(AuditLog).count(), 0)

    @patch('app.services.notification_service.logger')
    def test_reminder_is_sent_once(self, mock_logger) -> None:
        self.assertEqual(process_reminders(self.db, now=NOW, lead_hours=24), 1)
        self.assertIsNotNone(self.tomorrow.reminder_sent_at)
        audit = self.db.query(AuditLog).one()
        self.assertEqual(audit.action, 'APPOINTMENT_NOTIFICATION_STUB_SENT')
        self.assertEqual(audit.meta['kind'], KIND_REMINDER)
        self.assertEqual(audit.meta['customer_name'], 'Priya Sharma')
        mock_logger.info.assert_called_once()

        history = appointment_history(self.db, appointment_id=self.tomorrow.id)
        self.assertEqual([(h['action'], h['actor']) for h in history], [('APPOINTMENT_NOTIFICATION_STUB_SENT', None)])
        self.assertEqual(appointment_history(self.db, appointment_id=self.next_week.id), [])

        self.assertEqual(process_reminders(self.db, now=NOW, lead_hours=24), 0)


class CustomerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_phone_is_normalized_and_unique(self) -> None:
        customer = create_customer(self.db, full_name=' Priya ', phone_number='+91 98765-43210', email=' P@Example.com ')
        self.assertEqual(customer.full_name, 'Priya')
        self.assertEqual(customer.phone_number, '+919876543210')
        self.assertEqual(customer.email, 'p@example.com')
        with self.assertRaises(ValueError):
            create_customer(self.db, full_name='Someone Else', phone_number='+91-98765 43210')
        with self.assertRaises(ValueError):
            create_customer(self.db, full_name='  ')

    def test_search_by_name_or_phone(self) -> None:
        create_customer(self.db, full_name='Priya Sharma', phone_number='9876543210')
        create_customer(self.db, full_name='Rohan Mehta', phone_number='9123456780')
        self.assertEqual([c.full_name for c in search_customers(self.db, query='priya')], ['Priya Sharma'])
        self.assertEqual([c.full_name for c in search_customers(self.db, query='91234')], ['Rohan Mehta'])
        self.assertEqual(len(search_customers(self.db)), 2)


if __name__ == '__main__':
    unittest.main()
