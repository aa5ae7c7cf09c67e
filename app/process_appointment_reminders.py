import argparse
import logging
from datetime import datetime

from app.config import settings
from app.db import SessionLocal
from app.services.notification_service import process_reminders


def main() -> None:
    parser = argparse.ArgumentParser(description='Record reminder notifications for upcoming confirmed appointments.')
    parser.add_argument(
        '--lead-hours',
        type=int,
        default=settings.reminder_lead_hours,
        help='Remind appointments starting within this many hours.',
    )
    parser.add_argument('--dry-run', action='store_true', help='List due reminders without recording them.')
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    with SessionLocal() as db:
        count = process_reminders(db, now=datetime.now(), lead_hours=args.lead_hours, dry_run=args.dry_run)
        if not args.dry_run:
            db.commit()
    print(f'Appointment reminders processed: {count}{" (dry run)" if args.dry_run else ""}')


if __name__ == '__main__':
    main()
