import uuid
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, get_roles
from ..db import get_db
from ..models.models import AttendanceShift, User
from ..schemas.attendance import EndShiftRequest, StartShiftRequest, UpdateTasksRequest
from ..services import attendance as attendance_service
from ..services.attendance import ShiftStatus
from ..services.permissions import Action, require
from ..services.roles import RoleResolver


router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = structlog.get_logger()


def _serialize_shift(s: AttendanceShift, include_user: bool = False) -> Dict[str, Any]:
    data = {
        "id": str(s.id),
        "user_id": str(s.user_id),
        "workspace_id": str(s.workspace_id) if s.workspace_id else None,
        "project_id": str(s.project_id) if s.project_id else None,
        "shift_start_time": s.shift_start_time.isoformat(),
        "shift_end_time": s.shift_end_time.isoformat() if s.shift_end_time else None,
        "total_duration": s.total_duration,
        "end_activity": s.end_activity,
        "daily_tasks": list(s.daily_tasks or []),
        "status": s.status,
        "created_at": s.created_at.isoformat(),
        "updated_at": s.updated_at.isoformat(),
    }
    if include_user:
        data["user_name"] = s.user.name if s.user else None
        data["user_email"] = s.user.email if s.user else None
    return data


@router.post("/start-shift")
def start_shift(
    payload: StartShiftRequest,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    shift = attendance_service.start_shift(db, me, payload.workspace_id, payload.project_id, roles=roles)
    return {"data": _serialize_shift(shift)}


@router.post("/end-shift")
def end_shift(payload: EndShiftRequest, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    shift = attendance_service.end_shift(db, me, payload.attendance_id, payload.end_activity, payload.daily_tasks)
    return {"data": _serialize_shift(shift)}


@router.get("/active-shift")
def active_shift(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    shift = attendance_service.get_active_shift(db, me)
    return {"data": _serialize_shift(shift) if shift else None}


@router.get("/my-attendance")
def my_attendance(
    workspace_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    shifts = attendance_service.list_shifts(db, me, roles.global_role(me.id), workspace_id=workspace_id, user_id=me.id)
    items = [_serialize_shift(s) for s in shifts]
    return {"data": {"documents": items, "total": len(items)}}


@router.patch("/update-tasks/{attendance_id}")
def update_tasks(
    attendance_id: uuid.UUID,
    payload: UpdateTasksRequest,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    shift = attendance_service.update_daily_tasks(db, me, attendance_id, payload.daily_tasks)
    return {"data": _serialize_shift(shift)}


@router.get("/records")
def records(
    workspace_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    status: Optional[List[ShiftStatus]] = Query(default=None),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    shifts = attendance_service.list_shifts(
        db,
        me,
        roles.global_role(me.id),
        workspace_id=workspace_id,
        user_id=user_id,
        statuses=[s.value for s in status] if status else None,
    )
    items = [_serialize_shift(s, include_user=True) for s in shifts]
    return {"data": {"documents": items, "total": len(items)}}


@router.post("/auto-end-expired")
def auto_end_expired(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    require(roles.global_role(me.id), Action.VIEW_ADMIN_REPORT)
    logger.info("auto_complete_sweep_requested", user_id=str(me.id))
    result = attendance_service.auto_complete_expired_shifts(db)
    return {"data": result.as_dict()}
