from __future__ import annotations

import unittest
from datetime import date, datetime
from decimal import Decimal

from app.models import (
    AppointmentStatus,
    Booking,
    BookingStatus,
    DiscountType,
    Package,
    PackageService,
)
from app.services.booking_service import (
    BookingConflictError,
    BookingWizard,
    appointment_detail,
    cancel_appointment,
    create_appointment_from_wizard,
    make_slot_checker,
    save_appointment,
    update_appointment_status,
)
from app.services.catalog_service import load_service_infos
from sqlite_support import make_customer, make_employee, make_location, make_service, new_session

MONDAY = date(2026, 3, 2)


class BookingWizardTests(unittest.TestCase):
    def test_steps_follow_selected_services(self) -> None:
        wizard = BookingWizard([4, 7], slot_checker=lambda service_id, stylist_id, day, time_value: True)
        self.assertEqual(wizard.total_steps, 2)
        self.assertEqual(wizard.current_service_id, 4)

        wizard.choose(stylist_id=1, day=MONDAY, time_value='10:00')
        self.assertEqual(wizard.current_service_id, 7)
        self.assertFalse(wizard.is_complete)
        with self.assertRaises(ValueError):
            wizard.result()

        wizard.choose(stylist_id=2, day=MONDAY, time_value='11:00')
        self.assertTrue(wizard.is_complete)
        self.assertIsNone(wizard.current_service_id)
        steps = wizard.result()
        self.assertEqual([s.service_id for s in steps], [4, 7])
        self.assertEqual(steps[1].start, datetime(2026, 3, 2, 11, 0))

    def test_back_reopens_previous_step(self) -> None:
        wizard = BookingWizard([4, 7])
        wizard.choose(stylist_id=1, day=MONDAY, time_value='10:00')
        removed = wizard.back()
        self.assertEqual(removed.service_id, 4)
        self.assertEqual(wizard.current_step, 0)
        self.assertIsNone(wizard.back())

    def test_rejected_slot_raises_conflict(self) -> None:
        wizard = BookingWizard([4], slot_checker=lambda service_id, stylist_id, day, time_value: time_value != '10:00')
        with self.assertRaises(BookingConflictError):
            wizard.choose(stylist_id=1, day=MONDAY, time_value='10:00')
        self.assertEqual(wizard.current_step, 0)

    def test_choose_after_completion_fails(self) -> None:
        wizard = BookingWizard([4])
        wizard.choose(stylist_id=1, day=MONDAY, time_value='10:00')
        with self.assertRaises(ValueError):
            wizard.choose(stylist_id=1, day=MONDAY, time_value='11:00')

    def test_requires_a_service(self) -> None:
        with self.assertRaises(ValueError):
            BookingWizard([])


class BookingDatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.location = make_location(self.db)
        self.customer = make_customer(self.db)
        self.cut = make_service(self.db, 'Haircut', 45, '500.00')
        self.colour = make_service(self.db, 'Hair Colour', 90, '1800.00')
        self.facial = make_service(self.db, 'Classic Facial', 60, '1200.00')
        self.mani = make_service(self.db, 'Manicure', 40, '450.00')
        self.asha = make_employee(self.db, 'Asha', location=self.location, skills=[self.cut, self.colour])
        self.meera = make_employee(self.db, 'Meera', location=self.location, skills=[self.facial, self.mani])

    def tearDown(self) -> None:
        self.db.close()

    def _bookings(self, appointment_id: int) -> list[Booking]:
        return self.db.query(Booking).filter(Booking.appointment_id == appointment_id).order_by(Booking.id).all()

    def test_services_run_back_to_back(self) -> None:
        appointment = save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='10:00',
            service_ids=[self.cut.id, self.colour.id],
            stylists={self.cut.id: self.asha.id, self.colour.id: self.asha.id},
            location_id=self.location.id,
        )
        self.assertEqual(appointment.status, AppointmentStatus.CONFIRMED)
        self.assertEqual(appointment.end_time, datetime(2026, 3, 2, 12, 15))
        self.assertEqual(appointment.total_price, Decimal('2300.00'))
        bookings = self._bookings(appointment.id)
        self.assertEqual(
            [(b.start_time.time().isoformat(), b.end_time.time().isoformat()) for b in bookings],
            [('10:00:00', '10:45:00'), ('10:45:00', '12:15:00')],
        )

    def test_overlapping_booking_is_rejected(self) -> None:
        save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='10:00',
            service_ids=[self.colour.id],
            stylists={self.colour.id: self.asha.id},
        )
        with self.assertRaises(BookingConflictError):
            save_appointment(
                self.db,
                customer_id=self.customer.id,
                day=MONDAY,
                time_value='11:00',
                service_ids=[self.cut.id],
                stylists={self.cut.id: self.asha.id},
            )

    def test_canceling_frees_the_stylist(self) -> None:
        first = save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='10:00',
            service_ids=[self.colour.id],
            stylists={self.colour.id: self.asha.id},
        )
        cancel_appointment(self.db, appointment_id=first.id)
        self.assertTrue(all(b.status == BookingStatus.CANCELED for b in self._bookings(first.id)))

        second = save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='10:30',
            service_ids=[self.cut.id],
            stylists={self.cut.id: self.asha.id},
        )
        self.assertEqual(second.status, AppointmentStatus.CONFIRMED)

    def test_package_with_extra_service(self) -> None:
        package = Package(name='Spa Day', price=Decimal('1900.00'), is_customizable=True, active=True)
        self.db.add(package)
        self.db.flush()
        self.db.add_all(
            [
                PackageService(package_id=package.id, service_id=self.facial.id, package_selling_price=Decimal('1100.00')),
                PackageService(package_id=package.id, service_id=self.mani.id),
            ]
        )
        self.db.flush()

        appointment = save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='14:00',
            service_ids=[],
            package_ids=[package.id],
            package_stylists={package.id: self.meera.id},
            customized_services={package.id: [self.cut.id, self.mani.id]},
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal('10'),
        )
        self.assertEqual(appointment.total_duration, 145)
        self.assertEqual(appointment.subtotal, Decimal('2400.00'))
        self.assertEqual(appointment.total_price, Decimal('2160.00'))

        bookings = self._bookings(appointment.id)
        package_row = next(b for b in bookings if b.service_id is None)
        self.assertEqual(package_row.end_time, datetime(2026, 3, 2, 15, 40))
        included = [b for b in bookings if b.service_id in (self.facial.id, self.mani.id)]
        self.assertEqual(len(included), 2)
        self.assertTrue(all(b.price_paid == Decimal('0') and b.start_time is None for b in included))
        self.assertEqual(
            sorted(b.original_price for b in included), [Decimal('450.00'), Decimal('1100.00')]
        )
        extra = next(b for b in bookings if b.service_id == self.cut.id)
        self.assertEqual(extra.start_time, datetime(2026, 3, 2, 15, 40))
        self.assertEqual(extra.employee_id, self.meera.id)
        self.assertEqual(extra.price_paid, Decimal('500.00'))

    def test_missing_customer_or_services(self) -> None:
        with self.assertRaises(ValueError):
            save_appointment(self.db, customer_id=None, day=MONDAY, time_value='10:00', service_ids=[self.cut.id])
        with self.assertRaises(ValueError):
            save_appointment(self.db, customer_id=self.customer.id, day=MONDAY, time_value='10:00', service_ids=[])

    def test_status_transitions(self) -> None:
        appointment = save_appointment(
            self.db,
            customer_id=self.customer.id,
            day=MONDAY,
            time_value='10:00',
            service_ids=[self.cut.id],
            stylists={self.cut.id: self.asha.id},
        )
        update_appointment_status(self.db, appointment_id=appointment.id, status=AppointmentStatus.COMPLETED)
        self.assertTrue(all(b.status == BookingStatus.COMPLETED for b in self._bookings(appointment.id)))
        with self.assertRaises(ValueError):
            update_appointment_status(self.db, appointment_id=appointment.id, status=AppointmentStatus.CONFIRMED)

    def test_wizard_checker_and_submission(self) -> None:
        services = load_service_infos(self.db, [self.cut.id, self.facial.id])
        checker = make_slot_checker(self.db, services=services, location_id=self.location.id)
        wizard = BookingWizard([self.cut.id, self.facial.id], slot_checker=checker)

        with self.assertRaises(BookingConflictError):
            # Meera does not cut hair.
            wizard.choose(stylist_id=self.meera.id, day=MONDAY, time_value='09:00')
        wizard.choose(stylist_id=self.asha.id, day=MONDAY, time_value='09:00')
        wizard.choose(stylist_id=self.meera.id, day=MONDAY, time_value='09:30')

        appointment = create_appointment_from_wizard(
            self.db, customer_id=self.customer.id, steps=wizard.result(), location_id=self.location.id
        )
        self.assertEqual(appointment.status, AppointmentStatus.BOOKED)
        self.assertEqual(appointment.start_time, datetime(2026, 3, 2, 9, 0))
        self.assertEqual(appointment.end_time, datetime(2026, 3, 2, 10, 30))
        self.assertEqual(appointment.total_price, Decimal('1700.00'))

        detail = appointment_detail(self.db, appointment.id)
        self.assertEqual(detail['customer_name'], 'Priya')
        self.assertEqual({b['employee_name'] for b in detail['bookings']}, {'Asha', 'Meera'})

        self.assertFalse(checker(self.cut.id, self.asha.id, MONDAY, '09:30'))
        update_appointment_status(self.db, appointment_id=appointment.id, status=AppointmentStatus.CONFIRMED)
        self.assertTrue(all(b.status == BookingStatus.CONFIRMED for b in self._bookings(appointment.id)))


if __name__ == '__main__':
    unittest.main()
