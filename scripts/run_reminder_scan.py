#!/usr/bin/env python3
"""
Run the dose reminder scan once, or keep scanning with --loop.
Usage: python scripts/run_reminder_scan.py [--loop] [--interval 60]
"""
import sys
import os
import argparse
import asyncio
import logging

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from config import settings
from database import get_db_context, init_db
from services.reminder_service import reminder_service, run_reminder_loop


logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL), format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


async def scan_once():
    with get_db_context() as db:
        result = await reminder_service.scan(db)
    print(f"Open doses: {result.scanned} | sent: {result.sent} | duplicates: {result.duplicates} | failed: {result.failed}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Send due medication reminders")
    parser.add_argument("--loop", action="store_true", help="Keep scanning until interrupted")
    parser.add_argument("--interval", type=int, default=settings.REMINDER_SCAN_INTERVAL_SECONDS)
    args = parser.parse_args(argv)

    init_db()
    if args.loop:
        try:
            asyncio.run(run_reminder_loop(args.interval))
        except KeyboardInterrupt:
            logger.info("Reminder loop stopped")
    else:
        asyncio.run(scan_once())


if __name__ == "__main__":
    main()
