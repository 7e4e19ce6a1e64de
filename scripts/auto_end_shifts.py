"""
Close every attendance shift that is still open past the midnight after it started.

Meant to run from cron shortly after midnight (and is safe to run more often).

Usage:
    python scripts/auto_end_shifts.py [--tz America/Vancouver]
"""
import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from pms.db import SessionLocal
from pms.logging import setup_logging
from pms.services.attendance import auto_complete_expired_shifts


def main() -> int:
    parser = argparse.ArgumentParser(description="Auto-complete attendance shifts left open past midnight")
    parser.add_argument("--tz", default=None, help="IANA timezone used for the midnight boundary (default: TZ_DEFAULT)")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    try:
        result = auto_complete_expired_shifts(db, tz_name=args.tz)
    finally:
        db.close()

    print(f"Auto-ended {result.auto_ended_count} shift(s) at {result.timestamp.isoformat()}")
    for shift_id in result.failures:
        print(f"  FAILED: {shift_id}")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
