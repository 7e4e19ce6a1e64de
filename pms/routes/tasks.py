import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, get_roles
from ..db import get_db
from ..models.models import Task, User
from ..schemas.tasks import TaskCreate, TaskStatus, TaskStatusUpdate, TaskUpdate
from ..services import task_service
from ..services.roles import RoleResolver


router = APIRouter(prefix="/tasks", tags=["tasks"])


def _serialize_task(t: Task) -> Dict[str, Any]:
    return {
        "id": str(t.id),
        "workspace_id": str(t.workspace_id),
        "summary": t.summary,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "assignee_id": str(t.assignee_id) if t.assignee_id else None,
        "creator_id": str(t.creator_id) if t.creator_id else None,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "created": t.created.isoformat(),
        "updated": t.updated.isoformat(),
    }


@router.post("")
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    task = task_service.create_task(
        db,
        roles,
        me,
        workspace_id=payload.workspace_id,
        summary=payload.summary,
        description=payload.description,
        priority=payload.priority,
        status=payload.status,
        assignee_id=payload.assignee_id,
        due_date=payload.due_date,
    )
    return {"data": _serialize_task(task)}


@router.get("")
def list_tasks(
    workspace_id: uuid.UUID = Query(...),
    status: Optional[TaskStatus] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    tasks = task_service.list_tasks(db, roles, me, workspace_id, status)
    items = [_serialize_task(t) for t in tasks]
    return {"data": {"documents": items, "total": len(items)}}


@router.patch("/{task_id}")
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    task = task_service.update_task(db, roles, me, task_id, payload.model_dump(exclude_unset=True))
    return {"data": _serialize_task(task)}


@router.patch("/{task_id}/status")
def change_task_status(
    task_id: uuid.UUID,
    payload: TaskStatusUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    task = task_service.change_task_status(db, roles, me, task_id, payload.status)
    return {"data": _serialize_task(task)}


@router.delete("/{task_id}")
def delete_task(
    task_id: uuid.UUID,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    task_service.delete_task(db, roles, me, task_id)
    return {"data": {"id": str(task_id)}}
