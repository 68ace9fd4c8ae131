#!/usr/bin/env python3
"""
Associate existing global notifications with a user.
Creates the missing user_notifications rows; rows that already exist are skipped.
Usage: python scripts/backfill_notification_associations.py --user-id 8 [--patient-id 8] [--limit 10]
"""
import sys
import os
import argparse
import logging

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from config import settings
from database import get_db_context, init_db
from models import ProfileType
from services.errors import NotFoundError
from services.notification_backfill import backfill_user_notifications


logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL), format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill user notification associations")
    parser.add_argument("--user-id", type=int, required=True, help="User that should receive the notifications")
    parser.add_argument("--patient-id", type=int, help="Only notifications about this patient")
    parser.add_argument(
        "--profile-type",
        choices=[p.value for p in ProfileType],
        help="Profile recorded on the new rows (defaults to the user's own)",
    )
    parser.add_argument("--limit", type=int, help="Process at most this many notifications")
    parser.add_argument("--include-inactive", action="store_true", help="Also associate deactivated notifications")
    args = parser.parse_args(argv)

    init_db()
    with get_db_context() as db:
        try:
            report = backfill_user_notifications(
                db,
                args.user_id,
                patient_id=args.patient_id,
                limit=args.limit,
                profile_type=args.profile_type,
                include_inactive=args.include_inactive,
            )
        except NotFoundError as e:
            logger.error(str(e))
            return 1

    print(f"Notifications considered: {report.total}")
    print(f"  created:         {report.created}")
    print(f"  already present: {report.already_present}")
    print(f"  failed:          {report.failed}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
