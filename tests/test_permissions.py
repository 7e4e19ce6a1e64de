import uuid

import pytest

from pms.errors import Unauthorized
from pms.services.permissions import Action, POLICY, PolicyContext, can_perform, evaluate, require
from pms.services.roles import Role


ME = uuid.uuid4()
SOMEONE_ELSE = uuid.uuid4()


def test_policy_covers_every_role_and_action():
    for role in Role:
        assert set(POLICY[role]) == set(Action)


@pytest.mark.parametrize("role", [Role.ADMIN, Role.PROJECT_MANAGER])
def test_admin_and_pm_can_do_everything(role):
    for action in Action:
        assert can_perform(role, action)


def test_management_sees_reports_but_cannot_touch_tasks():
    assert can_perform(Role.MANAGEMENT, Action.VIEW_ADMIN_REPORT)
    assert can_perform(Role.MANAGEMENT, Action.VIEW_ALL_ATTENDANCE)
    for action in (Action.EDIT_TASK, Action.DELETE_TASK, Action.CHANGE_TASK_STATUS, Action.MANAGE_MEMBERS):
        assert not can_perform(Role.MANAGEMENT, action)


def test_team_lead_never_deletes():
    assert can_perform(Role.TEAM_LEAD, Action.EDIT_TASK, PolicyContext(ME, SOMEONE_ELSE))
    assert can_perform(Role.TEAM_LEAD, Action.CHANGE_TASK_STATUS)
    assert not can_perform(Role.TEAM_LEAD, Action.DELETE_TASK)
    assert not can_perform(Role.TEAM_LEAD, Action.DELETE_TASK, PolicyContext(ME, ME))


def test_employee_edits_only_own_tasks():
    assert can_perform(Role.EMPLOYEE, Action.EDIT_TASK, PolicyContext(ME, ME))
    assert not can_perform(Role.EMPLOYEE, Action.EDIT_TASK, PolicyContext(ME, SOMEONE_ELSE))
    assert not can_perform(Role.EMPLOYEE, Action.EDIT_TASK)
    assert not can_perform(Role.EMPLOYEE, Action.EDIT_TASK, PolicyContext(None, None))
    assert not can_perform(Role.EMPLOYEE, Action.CHANGE_TASK_STATUS, PolicyContext(ME, ME))
    assert not can_perform(Role.EMPLOYEE, Action.DELETE_TASK, PolicyContext(ME, ME))


def test_no_role_denies_everything():
    for action in Action:
        decision = evaluate(None, action, PolicyContext(ME, ME))
        assert not decision
        assert "not a member" in decision.reason


def test_denial_reason_names_role_and_action():
    decision = evaluate(Role.EMPLOYEE, Action.CHANGE_TASK_STATUS)
    assert decision.allowed is False
    assert decision.reason.startswith("Role EMPLOYEE is not allowed to perform change-task-status")
    assert "approval" in decision.reason
    assert evaluate(Role.ADMIN, Action.DELETE_TASK).reason is None


def test_require_raises_with_reason():
    with pytest.raises(Unauthorized) as exc:
        require(Role.TEAM_LEAD, Action.DELETE_TASK)
    assert exc.value.status_code == 403
    assert "TEAM_LEAD" in exc.value.detail
    require(Role.ADMIN, Action.DELETE_TASK)
