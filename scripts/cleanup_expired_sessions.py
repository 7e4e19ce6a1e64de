"""
Delete expired login sessions.

Usage:
    python scripts/cleanup_expired_sessions.py [--stats] [--user-id UUID]
"""
import argparse
import os
import sys
import uuid

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from pms.auth.sessions import cleanup_expired_sessions, delete_user_sessions, session_counts
from pms.db import SessionLocal
from pms.logging import setup_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Remove expired sessions")
    parser.add_argument("--stats", action="store_true", help="Only print session counts")
    parser.add_argument("--user-id", help="Also log out every session of this user")
    args = parser.parse_args()

    setup_logging()
    db = SessionLocal()
    try:
        if args.stats:
            counts = session_counts(db)
            print(f"Sessions: {counts['total']} total, {counts['active']} active, {counts['expired']} expired")
            return 0
        if args.user_id:
            removed = delete_user_sessions(db, uuid.UUID(args.user_id))
            print(f"Deleted {removed} session(s) for user {args.user_id}")
        removed = cleanup_expired_sessions(db)
        print(f"Deleted {removed} expired session(s)")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
