"""
Access policy: role x action -> allow/deny with a reason.

Pure functions only; callers resolve the session and role first.
"""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import Unauthorized
from .roles import Role


class Action(str, enum.Enum):
    VIEW_ADMIN_REPORT = "view-admin-report"
    VIEW_ALL_ATTENDANCE = "view-all-attendance"
    EDIT_TASK = "edit-task"
    DELETE_TASK = "delete-task"
    CHANGE_TASK_STATUS = "change-task-status"
    MANAGE_MEMBERS = "manage-members"
    MANAGE_WORKSPACE_SETTINGS = "manage-workspace-settings"


class Grant(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"
    OWNER_ONLY = "owner_only"


ALLOW, DENY, OWNER_ONLY = Grant.ALLOW, Grant.DENY, Grant.OWNER_ONLY

POLICY: Dict[Role, Dict[Action, Grant]] = {
    Role.ADMIN: {
        Action.VIEW_ADMIN_REPORT: ALLOW,
        Action.VIEW_ALL_ATTENDANCE: ALLOW,
        Action.EDIT_TASK: ALLOW,
        Action.DELETE_TASK: ALLOW,
        Action.CHANGE_TASK_STATUS: ALLOW,
        Action.MANAGE_MEMBERS: ALLOW,
        Action.MANAGE_WORKSPACE_SETTINGS: ALLOW,
    },
    Role.PROJECT_MANAGER: {
        Action.VIEW_ADMIN_REPORT: ALLOW,
        Action.VIEW_ALL_ATTENDANCE: ALLOW,
        Action.EDIT_TASK: ALLOW,
        Action.DELETE_TASK: ALLOW,
        Action.CHANGE_TASK_STATUS: ALLOW,
        Action.MANAGE_MEMBERS: ALLOW,
        Action.MANAGE_WORKSPACE_SETTINGS: ALLOW,
    },
    Role.MANAGEMENT: {
        Action.VIEW_ADMIN_REPORT: ALLOW,
        Action.VIEW_ALL_ATTENDANCE: ALLOW,
        Action.EDIT_TASK: DENY,
        Action.DELETE_TASK: DENY,
        Action.CHANGE_TASK_STATUS: DENY,
        Action.MANAGE_MEMBERS: DENY,
        Action.MANAGE_WORKSPACE_SETTINGS: DENY,
    },
    Role.TEAM_LEAD: {
        Action.VIEW_ADMIN_REPORT: DENY,
        Action.VIEW_ALL_ATTENDANCE: DENY,
        Action.EDIT_TASK: ALLOW,
        Action.DELETE_TASK: DENY,
        Action.CHANGE_TASK_STATUS: ALLOW,
        Action.MANAGE_MEMBERS: DENY,
        Action.MANAGE_WORKSPACE_SETTINGS: DENY,
    },
    Role.EMPLOYEE: {
        Action.VIEW_ADMIN_REPORT: DENY,
        Action.VIEW_ALL_ATTENDANCE: DENY,
        Action.EDIT_TASK: OWNER_ONLY,
        Action.DELETE_TASK: DENY,
        Action.CHANGE_TASK_STATUS: DENY,
        Action.MANAGE_MEMBERS: DENY,
        Action.MANAGE_WORKSPACE_SETTINGS: DENY,
    },
}

# Extra wording for denials that users hit often
DENY_HINTS: Dict[tuple, str] = {
    (Role.EMPLOYEE, Action.CHANGE_TASK_STATUS): "status changes by employees require approval",
    (Role.EMPLOYEE, Action.EDIT_TASK): "employees can only edit their own tasks",
    (Role.TEAM_LEAD, Action.DELETE_TASK): "only admins and project managers can delete tasks",
}


def _check_policy_is_complete() -> None:
    for role in Role:
        missing = set(Action) - set(POLICY.get(role, {}))
        if missing:
            raise RuntimeError(f"Access policy for {role.value} is missing {sorted(a.value for a in missing)}")


_check_policy_is_complete()


@dataclass(frozen=True)
class PolicyContext:
    actor_id: Optional[uuid.UUID] = None
    owner_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def _deny(role: Optional[Role], action: Action) -> Decision:
    if role is None:
        return Decision(False, f"You are not a member of this workspace and cannot perform {action.value}")
    hint = DENY_HINTS.get((role, action))
    reason = f"Role {role.value} is not allowed to perform {action.value}"
    if hint:
        reason = f"{reason}: {hint}"
    return Decision(False, reason)


def evaluate(role: Optional[Role], action: Action, context: Optional[PolicyContext] = None) -> Decision:
    if role is None:
        return _deny(None, action)
    grant = POLICY[role][action]
    if grant is ALLOW:
        return Decision(True)
    if grant is OWNER_ONLY:
        context = context or PolicyContext()
        if context.actor_id is not None and context.actor_id == context.owner_id:
            return Decision(True)
    return _deny(role, action)


def can_perform(role: Optional[Role], action: Action, context: Optional[PolicyContext] = None) -> bool:
    return evaluate(role, action, context).allowed


def require(role: Optional[Role], action: Action, context: Optional[PolicyContext] = None) -> None:
    decision = evaluate(role, action, context)
    if not decision.allowed:
        raise Unauthorized(decision.reason)
