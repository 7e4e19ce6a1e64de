"""
Create (or promote) an administrator and give them a workspace.

Usage:
    python scripts/seed_admin.py --email admin@example.com --password secret123 [--name Admin] [--workspace "Main"]
"""
import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from pms.auth.security import get_password_hash
from pms.db import Base, SessionLocal, engine
from pms.models.models import Member, User, Workspace
from pms.services.roles import Role
from pms.services.workspaces import create_workspace


def seed_admin(db, email: str, password: str, name: str, workspace_name: str) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(name=name, email=email, password_hash=get_password_hash(password))
        db.add(user)
        db.commit()
        db.refresh(user)
        print(f"[CREATE] user {email}")
    else:
        print(f"[EXISTS] user {email}")

    workspace = db.query(Workspace).filter(Workspace.owner_id == user.id, Workspace.name == workspace_name).first()
    if not workspace:
        workspace = create_workspace(db, user, workspace_name)
        print(f"[CREATE] workspace {workspace_name} ({workspace.invite_code})")
        return user

    member = db.query(Member).filter(Member.user_id == user.id, Member.workspace_id == workspace.id).first()
    if member is None:
        db.add(Member(user_id=user.id, workspace_id=workspace.id, role=Role.ADMIN.value))
    elif member.role != Role.ADMIN.value:
        member.role = Role.ADMIN.value
    db.commit()
    print(f"[ADMIN] {email} administers {workspace_name}")
    return user


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--workspace", default="Main")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db, args.email, args.password, args.name, args.workspace)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
