"""
Attendance shift lifecycle.

    (no row) -> IN_PROGRESS -> COMPLETED        clock-out by the user
                            -> AUTO_COMPLETED   closed by the midnight sweep

Every transition is one conditional UPDATE guarded by ``status = 'IN_PROGRESS'``
so a shift is closed at most once even when two sweeps overlap.
"""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..errors import Conflict, NotFound, Unauthorized
from ..models.models import AttendanceShift, User, utcnow
from .audit import create_audit_log
from .permissions import Action, can_perform, evaluate
from .roles import Role, RoleResolver
from .time_rules import next_local_midnight, whole_minutes_between
from .workspaces import get_workspace


logger = structlog.get_logger()


class ShiftStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    AUTO_COMPLETED = "AUTO_COMPLETED"


FINISHED_STATUSES = (ShiftStatus.COMPLETED.value, ShiftStatus.AUTO_COMPLETED.value)


@dataclass
class SweepResult:
    auto_ended_count: int = 0
    failures: List[uuid.UUID] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def success(self) -> bool:
        return not self.failures

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "auto_ended_count": self.auto_ended_count,
            "failures": [str(f) for f in self.failures],
            "timestamp": self.timestamp.isoformat(),
        }


def _get_shift(db: Session, shift_id: uuid.UUID) -> AttendanceShift:
    shift = db.query(AttendanceShift).filter(AttendanceShift.id == shift_id).first()
    if not shift:
        raise NotFound("Attendance record not found")
    return shift


def _active_shift(db: Session, user_id: uuid.UUID) -> Optional[AttendanceShift]:
    return (
        db.query(AttendanceShift)
        .filter(
            AttendanceShift.user_id == user_id,
            AttendanceShift.status == ShiftStatus.IN_PROGRESS.value,
        )
        .order_by(AttendanceShift.shift_start_time.desc())
        .first()
    )


def _close_if_in_progress(db: Session, shift_id: uuid.UUID, values: dict) -> bool:
    """Single-row conditional update; False if the shift was already closed."""
    updated = (
        db.query(AttendanceShift)
        .filter(
            AttendanceShift.id == shift_id,
            AttendanceShift.status == ShiftStatus.IN_PROGRESS.value,
        )
        .update(values, synchronize_session=False)
    )
    return updated == 1


def start_shift(
    db: Session,
    user: User,
    workspace_id: Optional[uuid.UUID] = None,
    project_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
    roles: Optional[RoleResolver] = None,
) -> AttendanceShift:
    if workspace_id is not None:
        get_workspace(db, workspace_id)
        roles = roles or RoleResolver(db)
        if roles.role(user.id, workspace_id) is None:
            raise Unauthorized("You must be a member of this workspace")
    if _active_shift(db, user.id):
        raise Conflict("You already have an active shift")
    now = now or utcnow()
    shift = AttendanceShift(
        user_id=user.id,
        workspace_id=workspace_id,
        project_id=project_id,
        shift_start_time=now,
        status=ShiftStatus.IN_PROGRESS.value,
        created_at=now,
        updated_at=now,
    )
    db.add(shift)
    db.flush()
    create_audit_log(
        db,
        entity_type="attendance",
        entity_id=shift.id,
        action="CLOCK_IN",
        actor_id=user.id,
        source="api",
        context={"workspace_id": str(workspace_id) if workspace_id else None},
        commit=False,
    )
    db.commit()
    db.refresh(shift)
    logger.info("shift_started", shift_id=str(shift.id), user_id=str(user.id))
    return shift


def end_shift(
    db: Session,
    user: User,
    shift_id: uuid.UUID,
    end_activity: str,
    daily_tasks: List[str],
    now: Optional[datetime] = None,
) -> AttendanceShift:
    shift = _get_shift(db, shift_id)
    if shift.user_id != user.id:
        raise Unauthorized("You can only end your own shift")
    if shift.status != ShiftStatus.IN_PROGRESS.value:
        raise Conflict("Shift already ended")

    now = now or utcnow()
    duration = whole_minutes_between(shift.shift_start_time, now)
    closed = _close_if_in_progress(
        db,
        shift.id,
        {
            "shift_end_time": now,
            "total_duration": duration,
            "end_activity": end_activity,
            "daily_tasks": list(daily_tasks),
            "status": ShiftStatus.COMPLETED.value,
            "updated_at": now,
        },
    )
    if not closed:
        db.rollback()
        raise Conflict("Shift already ended")
    create_audit_log(
        db,
        entity_type="attendance",
        entity_id=shift.id,
        action="CLOCK_OUT",
        actor_id=user.id,
        source="api",
        changes_json={"status": {"before": ShiftStatus.IN_PROGRESS.value, "after": ShiftStatus.COMPLETED.value}},
        context={"total_duration": duration},
        commit=False,
    )
    db.commit()
    db.refresh(shift)
    logger.info("shift_ended", shift_id=str(shift.id), user_id=str(user.id), total_duration=duration)
    return shift


def auto_complete_shift(
    db: Session,
    shift_id: uuid.UUID,
    shift_start_time: datetime,
    daily_tasks: Optional[list],
    now: datetime,
    tz_name: Optional[str] = None,
) -> bool:
    """Close one shift at the midnight after it started, if that midnight has passed.

    Returns True only when this call performed the transition.
    """
    midnight = next_local_midnight(shift_start_time, tz_name)
    if now < midnight:
        return False
    duration = whole_minutes_between(shift_start_time, midnight)
    closed = _close_if_in_progress(
        db,
        shift_id,
        {
            "shift_end_time": midnight,
            "total_duration": duration,
            "end_activity": settings.auto_end_activity,
            "daily_tasks": list(daily_tasks) if daily_tasks else [settings.auto_end_task_placeholder],
            "status": ShiftStatus.AUTO_COMPLETED.value,
            "updated_at": now,
        },
    )
    if not closed:
        db.rollback()
        return False
    create_audit_log(
        db,
        entity_type="attendance",
        entity_id=shift_id,
        action="AUTO_COMPLETE",
        actor_role="system",
        source="system",
        changes_json={"status": {"before": ShiftStatus.IN_PROGRESS.value, "after": ShiftStatus.AUTO_COMPLETED.value}},
        context={"shift_end_time": midnight.isoformat(), "total_duration": duration},
        commit=False,
    )
    db.commit()
    return True


def auto_complete_expired_shifts(
    db: Session,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> SweepResult:
    """Force-close every IN_PROGRESS shift whose start-day midnight has passed.

    Each shift is committed on its own; a failing row is rolled back, recorded
    in ``failures`` and the sweep moves on.
    """
    now = now or utcnow()
    result = SweepResult(timestamp=now)
    candidates = (
        db.query(
            AttendanceShift.id,
            AttendanceShift.user_id,
            AttendanceShift.shift_start_time,
            AttendanceShift.daily_tasks,
        )
        .filter(AttendanceShift.status == ShiftStatus.IN_PROGRESS.value)
        .order_by(AttendanceShift.shift_start_time)
        .all()
    )
    for shift_id, user_id, started_at, daily_tasks in candidates:
        try:
            if auto_complete_shift(db, shift_id, started_at, daily_tasks, now, tz_name):
                result.auto_ended_count += 1
                logger.info("shift_auto_completed", shift_id=str(shift_id), user_id=str(user_id))
        except SQLAlchemyError as e:
            db.rollback()
            result.failures.append(shift_id)
            logger.error("shift_auto_complete_failed", shift_id=str(shift_id), error=str(e))
    logger.info(
        "auto_complete_sweep_finished",
        candidates=len(candidates),
        auto_ended=result.auto_ended_count,
        failures=len(result.failures),
    )
    return result


def get_active_shift(db: Session, user: User, now: Optional[datetime] = None) -> Optional[AttendanceShift]:
    """The caller's open shift, closing it first if it already ran past midnight."""
    shift = _active_shift(db, user.id)
    if shift is None:
        return None
    now = now or utcnow()
    if auto_complete_shift(db, shift.id, shift.shift_start_time, shift.daily_tasks, now):
        logger.info("shift_auto_completed", shift_id=str(shift.id), user_id=str(user.id), trigger="active_shift")
        return None
    return shift


def update_daily_tasks(db: Session, user: User, shift_id: uuid.UUID, daily_tasks: List[str]) -> AttendanceShift:
    shift = _get_shift(db, shift_id)
    if shift.user_id != user.id:
        raise Unauthorized("You can only edit your own tasks")
    before = list(shift.daily_tasks or [])
    shift.daily_tasks = list(daily_tasks)
    shift.updated_at = utcnow()
    create_audit_log(
        db,
        entity_type="attendance",
        entity_id=shift.id,
        action="UPDATE",
        actor_id=user.id,
        source="api",
        changes_json={"daily_tasks": {"before": before, "after": list(daily_tasks)}},
        commit=False,
    )
    db.commit()
    db.refresh(shift)
    return shift


def list_shifts(
    db: Session,
    viewer: User,
    viewer_role: Optional[Role],
    workspace_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    statuses: Optional[List[str]] = None,
    limit: int = 500,
) -> List[AttendanceShift]:
    """Shift history visible to ``viewer``.

    ADMIN, PROJECT_MANAGER and MANAGEMENT see everyone; any other viewer sees
    only their own rows and may not ask for another employee.
    """
    query = db.query(AttendanceShift).options(joinedload(AttendanceShift.user))
    if can_perform(viewer_role, Action.VIEW_ALL_ATTENDANCE):
        if user_id:
            query = query.filter(AttendanceShift.user_id == user_id)
    else:
        if user_id and user_id != viewer.id:
            raise Unauthorized(evaluate(viewer_role, Action.VIEW_ALL_ATTENDANCE).reason)
        query = query.filter(AttendanceShift.user_id == viewer.id)
    if workspace_id:
        query = query.filter(AttendanceShift.workspace_id == workspace_id)
    query = query.filter(AttendanceShift.status.in_(statuses or FINISHED_STATUSES))
    return query.order_by(AttendanceShift.shift_start_time.desc()).limit(limit).all()
