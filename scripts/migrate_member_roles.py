"""
Rewrite legacy member roles to the five-role model.

MEMBER becomes EMPLOYEE; any other unknown value is reported and left alone.

Usage:
    python scripts/migrate_member_roles.py [--dry-run]
"""
import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from pms.db import SessionLocal
from pms.models.models import Member, utcnow
from pms.services.roles import LEGACY_ROLE_ALIASES, Role


def migrate_member_roles(db, dry_run: bool = False) -> dict:
    valid = {r.value for r in Role}
    stats = {"migrated": 0, "unchanged": 0, "unknown": 0}
    for member in db.query(Member).all():
        current = (member.role or "").strip().upper()
        if current in valid:
            stats["unchanged"] += 1
            continue
        target = LEGACY_ROLE_ALIASES.get(current)
        if target is None:
            stats["unknown"] += 1
            print(f"[SKIP] member {member.id}: unknown role {member.role!r}")
            continue
        print(f"[{'DRY-RUN' if dry_run else 'MIGRATE'}] member {member.id}: {member.role} -> {target.value}")
        stats["migrated"] += 1
        if not dry_run:
            member.role = target.value
            member.updated_at = utcnow()
    if dry_run:
        db.rollback()
    else:
        db.commit()
    return stats


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate legacy member roles")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        stats = migrate_member_roles(db, dry_run=args.dry_run)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    print(f"Migrated: {stats['migrated']}  Unchanged: {stats['unchanged']}  Unknown: {stats['unknown']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
