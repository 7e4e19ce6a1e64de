"""
Workspace role resolution.

A user's role is per workspace (one Member row per user/workspace pair). The
"global" role used for non workspace-scoped screens is the most privileged
role the user holds in any workspace.
"""
from __future__ import annotations

import enum
import uuid
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.models import Member


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    MANAGEMENT = "MANAGEMENT"
    TEAM_LEAD = "TEAM_LEAD"
    EMPLOYEE = "EMPLOYEE"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]

    @property
    def display_name(self) -> str:
        return ROLE_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        if not value:
            return None
        value = value.strip().upper()
        if value in LEGACY_ROLE_ALIASES:
            return LEGACY_ROLE_ALIASES[value]
        try:
            return cls(value)
        except ValueError:
            return None


# Higher wins when collapsing memberships into a global role
ROLE_RANK: Dict[Role, int] = {
    Role.ADMIN: 5,
    Role.PROJECT_MANAGER: 4,
    Role.MANAGEMENT: 3,
    Role.TEAM_LEAD: 2,
    Role.EMPLOYEE: 1,
}

ROLE_DISPLAY_NAMES: Dict[Role, str] = {
    Role.ADMIN: "Administrator",
    Role.PROJECT_MANAGER: "Project Manager",
    Role.MANAGEMENT: "Management",
    Role.TEAM_LEAD: "Team Lead",
    Role.EMPLOYEE: "Employee",
}

# Rows written before the five-role model used MEMBER
LEGACY_ROLE_ALIASES: Dict[str, Role] = {"MEMBER": Role.EMPLOYEE}


def highest_role(*roles: Optional[Role]) -> Optional[Role]:
    present = [r for r in roles if r is not None]
    if not present:
        return None
    return max(present, key=lambda r: r.rank)


def resolve_role(db: Session, user_id: uuid.UUID, workspace_id: uuid.UUID) -> Optional[Role]:
    """Role of ``user_id`` in ``workspace_id``; None when the user is not a member."""
    member = (
        db.query(Member)
        .filter(Member.user_id == user_id, Member.workspace_id == workspace_id)
        .first()
    )
    if member is None:
        return None
    return Role.parse(member.role)


def resolve_global_role(db: Session, user_id: uuid.UUID) -> Optional[Role]:
    rows = db.query(Member.role).filter(Member.user_id == user_id).all()
    return highest_role(*(Role.parse(r[0]) for r in rows))


class RoleResolver:
    """Per-request memo over ``resolve_role``/``resolve_global_role``.

    Create one per request; it must not outlive it.
    """

    def __init__(self, db: Session):
        self.db = db
        self._workspace: Dict[Tuple[uuid.UUID, uuid.UUID], Optional[Role]] = {}
        self._global: Dict[uuid.UUID, Optional[Role]] = {}

    def role(self, user_id: uuid.UUID, workspace_id: uuid.UUID) -> Optional[Role]:
        key = (user_id, workspace_id)
        if key not in self._workspace:
            self._workspace[key] = resolve_role(self.db, user_id, workspace_id)
        return self._workspace[key]

    def global_role(self, user_id: uuid.UUID) -> Optional[Role]:
        if user_id not in self._global:
            self._global[user_id] = resolve_global_role(self.db, user_id)
        return self._global[user_id]

    def forget(self, user_id: uuid.UUID) -> None:
        """Drop memoized roles for ``user_id`` after a membership change in this request."""
        self._global.pop(user_id, None)
        for key in [k for k in self._workspace if k[0] == user_id]:
            del self._workspace[key]
