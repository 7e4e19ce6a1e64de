import uuid

from pms.services.roles import Role, RoleResolver, highest_role, resolve_global_role, resolve_role


def test_parse_maps_legacy_member_to_employee():
    assert Role.parse("MEMBER") is Role.EMPLOYEE
    assert Role.parse("team_lead") is Role.TEAM_LEAD
    assert Role.parse("OWNER") is None
    assert Role.parse(None) is None


def test_highest_role():
    assert highest_role(Role.EMPLOYEE, Role.MANAGEMENT, None) is Role.MANAGEMENT
    assert highest_role(None, None) is None


def test_non_member_has_no_role(db, make_user, make_workspace):
    owner, outsider = make_user(), make_user()
    ws = make_workspace(owner)
    assert resolve_role(db, outsider.id, ws.id) is None
    assert resolve_global_role(db, outsider.id) is None


def test_role_is_per_workspace(db, make_user, make_workspace, add_member):
    owner, user = make_user(), make_user()
    ws1, ws2 = make_workspace(owner, "One"), make_workspace(owner, "Two")
    add_member(user, ws1, Role.EMPLOYEE)
    add_member(user, ws2, Role.ADMIN)
    assert resolve_role(db, user.id, ws1.id) is Role.EMPLOYEE
    assert resolve_role(db, user.id, ws2.id) is Role.ADMIN
    assert resolve_global_role(db, user.id) is Role.ADMIN


def test_legacy_member_rows_resolve_as_employee(db, make_user, make_workspace, add_member):
    owner, user = make_user(), make_user()
    ws = make_workspace(owner)
    add_member(user, ws, "MEMBER")
    assert resolve_role(db, user.id, ws.id) is Role.EMPLOYEE


def test_resolver_memoizes_until_forgotten(db, make_user, make_workspace, add_member):
    owner, user = make_user(), make_user()
    ws = make_workspace(owner)
    member = add_member(user, ws, Role.EMPLOYEE)
    roles = RoleResolver(db)
    assert roles.role(user.id, ws.id) is Role.EMPLOYEE

    member.role = Role.TEAM_LEAD.value
    db.commit()
    assert roles.role(user.id, ws.id) is Role.EMPLOYEE
    roles.forget(user.id)
    assert roles.role(user.id, ws.id) is Role.TEAM_LEAD
    assert roles.global_role(user.id) is Role.TEAM_LEAD
    assert roles.role(uuid.uuid4(), ws.id) is None
