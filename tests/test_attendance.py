from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from pms.config import settings
from pms.errors import Conflict, NotFound, Unauthorized
from pms.models.models import AttendanceShift
from pms.services.audit import get_audit_logs
from pms.services import attendance
from pms.services.attendance import (
    ShiftStatus,
    auto_complete_expired_shifts,
    auto_complete_shift,
    end_shift,
    get_active_shift,
    list_shifts,
    start_shift,
    update_daily_tasks,
)
from pms.services.roles import Role


D = datetime(2025, 3, 10)


def _open_shift(db, user, started_at, daily_tasks=None):
    shift = AttendanceShift(
        user_id=user.id,
        shift_start_time=started_at,
        status=ShiftStatus.IN_PROGRESS.value,
        daily_tasks=daily_tasks,
        created_at=started_at,
        updated_at=started_at,
    )
    db.add(shift)
    db.commit()
    db.refresh(shift)
    return shift


def test_start_then_end_shift(db, make_user):
    user = make_user()
    shift = start_shift(db, user, now=D.replace(hour=9))
    assert shift.status == "IN_PROGRESS"

    ended = end_shift(db, user, shift.id, "Wrapped up", ["Fixed login"], now=D.replace(hour=17, minute=30, second=59))
    assert ended.status == "COMPLETED"
    assert ended.total_duration == 510
    assert ended.shift_end_time == D.replace(hour=17, minute=30, second=59)
    assert ended.daily_tasks == ["Fixed login"]
    logs = get_audit_logs(db, entity_type="attendance", entity_id=shift.id)
    assert sorted(log.action for log in logs) == ["CLOCK_IN", "CLOCK_OUT"]
    assert all(len(log.integrity_hash) == 64 for log in logs)


def test_only_one_active_shift(db, make_user):
    user = make_user()
    start_shift(db, user)
    with pytest.raises(Conflict):
        start_shift(db, user)


def test_cannot_end_someone_elses_shift(db, make_user):
    owner, other = make_user(), make_user()
    shift = start_shift(db, owner)
    with pytest.raises(Unauthorized):
        end_shift(db, other, shift.id, "done", ["x"])


def test_cannot_end_twice(db, make_user):
    user = make_user()
    shift = start_shift(db, user)
    end_shift(db, user, shift.id, "done", ["x"])
    with pytest.raises(Conflict):
        end_shift(db, user, shift.id, "again", ["y"])


def test_end_unknown_shift(db, make_user):
    import uuid
    with pytest.raises(NotFound):
        end_shift(db, make_user(), uuid.uuid4(), "done", ["x"])


def test_sweep_closes_shift_at_midnight(db, make_user):
    user = make_user()
    shift = _open_shift(db, user, D.replace(hour=22))

    result = auto_complete_expired_shifts(db, now=D + timedelta(days=1, seconds=1), tz_name="UTC")

    assert result.auto_ended_count == 1
    assert result.success
    db.refresh(shift)
    assert shift.status == "AUTO_COMPLETED"
    assert shift.shift_end_time == D + timedelta(days=1)
    assert shift.total_duration == 120
    assert shift.end_activity == settings.auto_end_activity
    assert shift.daily_tasks == [settings.auto_end_task_placeholder]


def test_sweep_keeps_existing_daily_tasks(db, make_user):
    shift = _open_shift(db, make_user(), D.replace(hour=20), daily_tasks=["Reviewed PRs"])
    auto_complete_expired_shifts(db, now=D + timedelta(days=2), tz_name="UTC")
    db.refresh(shift)
    assert shift.daily_tasks == ["Reviewed PRs"]
    assert shift.shift_end_time == D + timedelta(days=1)


def test_sweep_leaves_todays_shifts_alone(db, make_user):
    shift = _open_shift(db, make_user(), D.replace(hour=22))
    result = auto_complete_expired_shifts(db, now=D.replace(hour=23, minute=59, second=59), tz_name="UTC")
    assert result.auto_ended_count == 0
    db.refresh(shift)
    assert shift.status == "IN_PROGRESS"


def test_sweep_is_idempotent(db, make_user):
    shift = _open_shift(db, make_user(), D.replace(hour=22))
    now = D + timedelta(days=1, hours=1)
    assert auto_complete_expired_shifts(db, now=now, tz_name="UTC").auto_ended_count == 1
    db.refresh(shift)
    snapshot = (shift.status, shift.shift_end_time, shift.total_duration, shift.updated_at)

    second = auto_complete_expired_shifts(db, now=now + timedelta(hours=5), tz_name="UTC")

    assert second.auto_ended_count == 0
    db.refresh(shift)
    assert (shift.status, shift.shift_end_time, shift.total_duration, shift.updated_at) == snapshot


def test_sweep_continues_past_a_failing_row(db, make_user, monkeypatch):
    s1 = _open_shift(db, make_user(), D.replace(hour=8))
    s2 = _open_shift(db, make_user(), D.replace(hour=9))
    s3 = _open_shift(db, make_user(), D.replace(hour=10))
    real = attendance.auto_complete_shift

    def flaky(db_, shift_id, *args, **kwargs):
        if shift_id == s2.id:
            raise OperationalError("UPDATE attendance", {}, Exception("lock timeout"))
        return real(db_, shift_id, *args, **kwargs)

    monkeypatch.setattr(attendance, "auto_complete_shift", flaky)
    result = auto_complete_expired_shifts(db, now=D + timedelta(days=1), tz_name="UTC")

    assert result.auto_ended_count == 2
    assert result.failures == [s2.id]
    assert result.success is False
    statuses = {s.id: s.status for s in db.query(AttendanceShift).all()}
    assert statuses == {s1.id: "AUTO_COMPLETED", s2.id: "IN_PROGRESS", s3.id: "AUTO_COMPLETED"}


def test_active_shift_auto_completes_stale_shift(db, make_user):
    user = make_user()
    shift = _open_shift(db, user, D.replace(hour=22))
    assert get_active_shift(db, user, now=D.replace(hour=23)).id == shift.id
    assert get_active_shift(db, user, now=D + timedelta(days=1, minutes=5)) is None
    db.refresh(shift)
    assert shift.status == "AUTO_COMPLETED"


def test_update_daily_tasks_owner_only(db, make_user):
    owner, other = make_user(), make_user()
    shift = start_shift(db, owner)
    updated = update_daily_tasks(db, owner, shift.id, ["a", "b"])
    assert updated.daily_tasks == ["a", "b"]
    with pytest.raises(Unauthorized):
        update_daily_tasks(db, other, shift.id, ["c"])


def test_history_visibility(db, make_user):
    alice, bob, boss = make_user(name="Alice"), make_user(name="Bob"), make_user(name="Boss")
    for user in (alice, bob):
        shift = start_shift(db, user, now=D.replace(hour=9))
        end_shift(db, user, shift.id, "done", ["x"], now=D.replace(hour=10))

    own = list_shifts(db, alice, Role.EMPLOYEE)
    assert [s.user_id for s in own] == [alice.id]
    with pytest.raises(Unauthorized):
        list_shifts(db, alice, Role.TEAM_LEAD, user_id=bob.id)

    everyone = list_shifts(db, boss, Role.MANAGEMENT)
    assert {s.user_id for s in everyone} == {alice.id, bob.id}
    only_bob = list_shifts(db, boss, Role.ADMIN, user_id=bob.id)
    assert [s.user_id for s in only_bob] == [bob.id]


def test_history_excludes_open_shifts_by_default(db, make_user):
    user = make_user()
    start_shift(db, user)
    assert list_shifts(db, user, Role.EMPLOYEE) == []
    assert len(list_shifts(db, user, Role.EMPLOYEE, statuses=["IN_PROGRESS"])) == 1


def test_start_shift_in_workspace_requires_membership(db, make_user, make_workspace, add_member):
    owner, outsider = make_user(), make_user()
    ws = make_workspace(owner)
    add_member(owner, ws, Role.EMPLOYEE)

    with pytest.raises(Unauthorized):
        start_shift(db, outsider, workspace_id=ws.id)
    assert db.query(AttendanceShift).count() == 0

    shift = start_shift(db, owner, workspace_id=ws.id)
    assert shift.workspace_id == ws.id


def test_start_shift_in_unknown_workspace(db, make_user):
    import uuid
    with pytest.raises(NotFound):
        start_shift(db, make_user(), workspace_id=uuid.uuid4())


def test_auto_complete_skips_shift_closed_after_selection(db, make_user):
    user = make_user()
    shift = start_shift(db, user, now=D.replace(hour=9))
    end_shift(db, user, shift.id, "done", ["x"], now=D.replace(hour=10))

    # Same arguments the sweep would pass had it read the row while still open
    closed = auto_complete_shift(db, shift.id, D.replace(hour=9), None, D + timedelta(days=1), "UTC")

    assert closed is False
    db.refresh(shift)
    assert shift.status == "COMPLETED"
    assert shift.total_duration == 60
    assert shift.shift_end_time == D.replace(hour=10)
    assert shift.end_activity == "done"
