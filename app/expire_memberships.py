import argparse
import logging
from datetime import date

from app.config import settings
from app.db import SessionLocal
from app.services.loyalty_service import expire_memberships


def main() -> None:
    parser = argparse.ArgumentParser(description='Mark customer memberships past their end date as expired.')
    parser.add_argument('--today', type=date.fromisoformat, default=None, help='Date to expire against (YYYY-MM-DD).')
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    with SessionLocal() as db:
        count = expire_memberships(db, today=args.today)
        db.commit()
    print(f'Memberships expired: {count}')


if __name__ == '__main__':
    main()
