import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..errors import NotFound, Unauthorized
from ..models.models import Task, User, utcnow
from .audit import compute_diff, create_audit_log
from .permissions import Action, PolicyContext, require
from .roles import Role, RoleResolver


TASK_STATUSES = ("BACKLOG", "TODO", "IN_PROGRESS", "IN_REVIEW", "DONE")
EDITABLE_FIELDS = ("summary", "description", "priority", "assignee_id", "due_date")


def _snapshot(task: Task) -> Dict[str, Any]:
    return {
        "summary": task.summary,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "assignee_id": str(task.assignee_id) if task.assignee_id else None,
        "due_date": task.due_date.isoformat() if task.due_date else None,
    }


def get_task(db: Session, task_id: uuid.UUID) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found")
    return task


def require_member(roles: RoleResolver, user: User, workspace_id: uuid.UUID) -> Role:
    role = roles.role(user.id, workspace_id)
    if role is None:
        raise Unauthorized("You must be a member of this workspace")
    return role


def _authorize(roles: RoleResolver, user: User, task: Task, action: Action) -> Optional[Role]:
    role = roles.role(user.id, task.workspace_id)
    require(role, action, PolicyContext(actor_id=user.id, owner_id=task.owner_id))
    return role


def create_task(
    db: Session,
    roles: RoleResolver,
    user: User,
    *,
    workspace_id: uuid.UUID,
    summary: str,
    description: Optional[str] = None,
    priority: str = "MEDIUM",
    status: str = "TODO",
    assignee_id: Optional[uuid.UUID] = None,
    due_date: Optional[datetime] = None,
) -> Task:
    role = require_member(roles, user, workspace_id)
    now = utcnow()
    task = Task(
        summary=summary.strip(),
        description=description or "",
        priority=priority,
        status=status,
        workspace_id=workspace_id,
        assignee_id=assignee_id,
        creator_id=user.id,
        due_date=due_date,
        created=now,
        updated=now,
    )
    db.add(task)
    db.flush()
    create_audit_log(
        db, "task", task.id, "CREATE",
        actor_id=user.id, actor_role=role.value, source="api",
        context={"workspace_id": str(workspace_id)}, commit=False,
    )
    db.commit()
    db.refresh(task)
    return task


def list_tasks(db: Session, roles: RoleResolver, user: User, workspace_id: uuid.UUID, status: Optional[str] = None) -> List[Task]:
    require_member(roles, user, workspace_id)
    query = db.query(Task).filter(Task.workspace_id == workspace_id)
    if status:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created.desc()).all()


def update_task(db: Session, roles: RoleResolver, user: User, task_id: uuid.UUID, changes: Dict[str, Any]) -> Task:
    task = get_task(db, task_id)
    role = _authorize(roles, user, task, Action.EDIT_TASK)
    before = _snapshot(task)
    for key, value in changes.items():
        if key in EDITABLE_FIELDS:
            setattr(task, key, value)
    task.updated = utcnow()
    create_audit_log(
        db, "task", task.id, "UPDATE",
        actor_id=user.id, actor_role=role.value, source="api",
        changes_json=compute_diff(before, _snapshot(task)), commit=False,
    )
    db.commit()
    db.refresh(task)
    return task


def change_task_status(db: Session, roles: RoleResolver, user: User, task_id: uuid.UUID, status: str) -> Task:
    task = get_task(db, task_id)
    role = _authorize(roles, user, task, Action.CHANGE_TASK_STATUS)
    previous = task.status
    task.status = status
    task.updated = utcnow()
    create_audit_log(
        db, "task", task.id, "STATUS_CHANGE",
        actor_id=user.id, actor_role=role.value, source="api",
        changes_json={"status": {"before": previous, "after": status}}, commit=False,
    )
    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, roles: RoleResolver, user: User, task_id: uuid.UUID) -> None:
    task = get_task(db, task_id)
    role = _authorize(roles, user, task, Action.DELETE_TASK)
    create_audit_log(
        db, "task", task.id, "DELETE",
        actor_id=user.id, actor_role=role.value, source="api",
        changes_json={"before": _snapshot(task)},
        context={"workspace_id": str(task.workspace_id)}, commit=False,
    )
    db.delete(task)
    db.commit()
