from __future__ import annotations

import unittest
from datetime import date, datetime, time

from app.models import ApprovalStatus
from app.services.schedule_service import (
    ENTRY_OVERRIDE,
    ENTRY_REGULAR,
    ENTRY_TIME_OFF,
    DayConfig,
    add_specific_shift,
    add_time_off,
    day_of_week,
    default_week_config,
    format_duration,
    parse_hhmm,
    resolve_day_windows,
    set_regular_shifts,
    set_time_off_status,
    shift_windows_for_date,
    weekly_schedule,
)
from sqlite_support import make_employee, make_location, new_session

MONDAY = date(2026, 3, 2)


class SchedulePureTests(unittest.TestCase):
    def test_day_of_week_counts_from_sunday(self) -> None:
        self.assertEqual(day_of_week(date(2026, 3, 1)), 0)
        self.assertEqual(day_of_week(MONDAY), 1)
        self.assertEqual(day_of_week(date(2026, 3, 7)), 6)

    def test_parse_hhmm(self) -> None:
        self.assertEqual(parse_hhmm('09:30'), time(9, 30))
        self.assertEqual(parse_hhmm(' 14:05 '), time(14, 5))
        with self.assertRaises(ValueError):
            parse_hhmm('nine')
        for raw in ('9:30xyz', '09:3', '9:30:00', '24:00'):
            with self.assertRaises(ValueError):
                parse_hhmm(raw)

    def test_duration_labels(self) -> None:
        self.assertEqual(format_duration(45), '45 min')
        self.assertEqual(format_duration(120), '2 hr')
        self.assertEqual(format_duration(95), '1 hr 35 min')

    def test_default_week_config(self) -> None:
        config = default_week_config()
        self.assertEqual(len(config), 7)
        self.assertFalse(config[0].enabled)
        self.assertEqual(config[1].shifts, [(time(9, 0), time(18, 0))])
        self.assertEqual(config[6].shifts, [(time(9, 0), time(17, 0))])

    def test_specific_shift_replaces_recurring_pattern(self) -> None:
        windows = resolve_day_windows(
            MONDAY,
            recurring=[(time(9, 0), time(18, 0))],
            specific=[(datetime(2026, 3, 2, 12, 0), datetime(2026, 3, 2, 16, 0))],
            on_time_off=False,
        )
        self.assertEqual(len(windows), 1)
        self.assertEqual(windows[0].source, ENTRY_OVERRIDE)
        self.assertEqual(windows[0].start, datetime(2026, 3, 2, 12, 0))

    def test_recurring_windows_are_sorted(self) -> None:
        windows = resolve_day_windows(
            MONDAY,
            recurring=[(time(14, 0), time(18, 0)), (time(9, 0), time(12, 0))],
            specific=[],
            on_time_off=False,
        )
        self.assertEqual([w.start.hour for w in windows], [9, 14])
        self.assertTrue(all(w.source == ENTRY_REGULAR for w in windows))

    def test_time_off_clears_the_day(self) -> None:
        windows = resolve_day_windows(
            MONDAY,
            recurring=[(time(9, 0), time(18, 0))],
            specific=[(datetime(2026, 3, 2, 12, 0), datetime(2026, 3, 2, 16, 0))],
            on_time_off=True,
        )
        self.assertEqual(windows, [])


class ScheduleDatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.location = make_location(self.db)
        self.employee = make_employee(self.db, 'Asha', location=self.location, weekly_hours=None)

    def tearDown(self) -> None:
        self.db.close()

    def test_overlapping_regular_shifts_are_rejected(self) -> None:
        config = {1: DayConfig(enabled=True, shifts=[(time(9, 0), time(13, 0)), (time(12, 0), time(17, 0))])}
        with self.assertRaises(ValueError):
            set_regular_shifts(self.db, employee_id=self.employee.id, location_id=self.location.id, week_config=config)

    def test_regular_shifts_replace_previous_pattern(self) -> None:
        set_regular_shifts(
            self.db,
            employee_id=self.employee.id,
            location_id=self.location.id,
            week_config=default_week_config(),
        )
        created = set_regular_shifts(
            self.db,
            employee_id=self.employee.id,
            location_id=self.location.id,
            week_config={1: DayConfig(enabled=True, shifts=[(time(10, 0), time(14, 0))])},
        )
        self.assertEqual(len(created), 1)
        windows = shift_windows_for_date(self.db, employee_id=self.employee.id, day=MONDAY)
        self.assertEqual([(w.start.hour, w.end.hour) for w in windows], [(10, 14)])
        self.assertEqual(shift_windows_for_date(self.db, employee_id=self.employee.id, day=date(2026, 3, 3)), [])

    def test_specific_shift_must_stay_within_one_day(self) -> None:
        with self.assertRaises(ValueError):
            add_specific_shift(
                self.db,
                employee_id=self.employee.id,
                location_id=self.location.id,
                start_time=datetime(2026, 3, 2, 20, 0),
                end_time=datetime(2026, 3, 3, 2, 0),
            )

    def test_pending_time_off_does_not_block_until_approved(self) -> None:
        set_regular_shifts(
            self.db,
            employee_id=self.employee.id,
            location_id=self.location.id,
            week_config=default_week_config(),
        )
        request = add_time_off(self.db, employee_id=self.employee.id, start_date=MONDAY, end_date=MONDAY)
        self.assertEqual(len(shift_windows_for_date(self.db, employee_id=self.employee.id, day=MONDAY)), 1)

        set_time_off_status(self.db, request_id=request.id, status=ApprovalStatus.APPROVED)
        self.assertEqual(shift_windows_for_date(self.db, employee_id=self.employee.id, day=MONDAY), [])

    def test_time_off_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            add_time_off(self.db, employee_id=self.employee.id, start_date=MONDAY, end_date=date(2026, 3, 1))

    def test_weekly_schedule_marks_each_entry_kind(self) -> None:
        set_regular_shifts(
            self.db,
            employee_id=self.employee.id,
            location_id=self.location.id,
            week_config=default_week_config(),
        )
        add_specific_shift(
            self.db,
            employee_id=self.employee.id,
            location_id=self.location.id,
            start_time=datetime(2026, 3, 3, 12, 0),
            end_time=datetime(2026, 3, 3, 20, 0),
        )
        request = add_time_off(
            self.db, employee_id=self.employee.id, start_date=date(2026, 3, 4), end_date=date(2026, 3, 4)
        )
        set_time_off_status(self.db, request_id=request.id, status=ApprovalStatus.APPROVED)

        rows = weekly_schedule(self.db, week_start=MONDAY, location_id=self.location.id)
        self.assertEqual(len(rows), 1)
        days = rows[0]['days']
        self.assertEqual([e.kind for e in days['2026-03-02']], [ENTRY_REGULAR])
        self.assertEqual([e.kind for e in days['2026-03-03']], [ENTRY_OVERRIDE])
        self.assertEqual([e.kind for e in days['2026-03-04']], [ENTRY_TIME_OFF])
        # Sunday is off in the default week.
        self.assertEqual(days['2026-03-08'], [])


if __name__ == '__main__':
    unittest.main()
