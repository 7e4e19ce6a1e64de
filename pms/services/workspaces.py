import secrets
import string
import uuid
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, joinedload

from ..errors import BadRequest, Conflict, NotFound, Unauthorized
from ..models.models import Member, User, Workspace, utcnow
from .audit import create_audit_log
from .permissions import Action, require
from .roles import Role, RoleResolver


logger = structlog.get_logger()

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = 6) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def get_workspace(db: Session, workspace_id: uuid.UUID) -> Workspace:
    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()
    if not workspace:
        raise NotFound("Workspace not found")
    return workspace


def _unique_invite_code(db: Session) -> str:
    code = generate_invite_code()
    while db.query(Workspace).filter(Workspace.invite_code == code).first():
        code = generate_invite_code()
    return code


def create_workspace(db: Session, owner: User, name: str, image_url: Optional[str] = None) -> Workspace:
    workspace = Workspace(name=name.strip(), image_url=image_url, invite_code=_unique_invite_code(db), owner_id=owner.id)
    db.add(workspace)
    db.flush()
    # The creator administers the workspace
    db.add(Member(user_id=owner.id, workspace_id=workspace.id, role=Role.ADMIN.value))
    create_audit_log(
        db, "workspace", workspace.id, "CREATE",
        actor_id=owner.id, actor_role=Role.ADMIN.value, source="api", commit=False,
    )
    db.commit()
    db.refresh(workspace)
    logger.info("workspace_created", workspace_id=str(workspace.id), owner_id=str(owner.id))
    return workspace


def list_user_workspaces(db: Session, user: User) -> List[Tuple[Workspace, Optional[Role]]]:
    rows = (
        db.query(Workspace, Member.role)
        .join(Member, Member.workspace_id == Workspace.id)
        .filter(Member.user_id == user.id)
        .order_by(Workspace.created_at.desc())
        .all()
    )
    return [(ws, Role.parse(role)) for ws, role in rows]


def update_workspace(
    db: Session,
    roles: RoleResolver,
    user: User,
    workspace_id: uuid.UUID,
    name: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Workspace:
    workspace = get_workspace(db, workspace_id)
    role = roles.role(user.id, workspace.id)
    require(role, Action.MANAGE_WORKSPACE_SETTINGS)
    before = {"name": workspace.name, "image_url": workspace.image_url}
    if name is not None:
        workspace.name = name.strip()
    if image_url is not None:
        workspace.image_url = image_url
    workspace.updated_at = utcnow()
    create_audit_log(
        db, "workspace", workspace.id, "UPDATE",
        actor_id=user.id, actor_role=role.value, source="api",
        changes_json={"before": before, "after": {"name": workspace.name, "image_url": workspace.image_url}},
        commit=False,
    )
    db.commit()
    db.refresh(workspace)
    return workspace


def reset_invite_code(db: Session, roles: RoleResolver, user: User, workspace_id: uuid.UUID) -> Workspace:
    workspace = get_workspace(db, workspace_id)
    role = roles.role(user.id, workspace.id)
    require(role, Action.MANAGE_WORKSPACE_SETTINGS)
    workspace.invite_code = _unique_invite_code(db)
    workspace.updated_at = utcnow()
    create_audit_log(
        db, "workspace", workspace.id, "RESET_INVITE_CODE",
        actor_id=user.id, actor_role=role.value, source="api", commit=False,
    )
    db.commit()
    db.refresh(workspace)
    return workspace


def join_workspace(db: Session, roles: RoleResolver, user: User, workspace_id: uuid.UUID, code: str) -> Member:
    """Self-service membership through the workspace invite code; joiners start as EMPLOYEE."""
    workspace = get_workspace(db, workspace_id)
    if workspace.invite_code != code.strip().upper():
        raise BadRequest("Invalid invite code")
    if roles.role(user.id, workspace.id) is not None:
        raise Conflict("Already a member of this workspace")
    member = Member(user_id=user.id, workspace_id=workspace.id, role=Role.EMPLOYEE.value)
    db.add(member)
    db.flush()
    create_audit_log(
        db, "member", member.id, "JOIN",
        actor_id=user.id, actor_role=Role.EMPLOYEE.value, source="api",
        context={"workspace_id": str(workspace.id)}, commit=False,
    )
    db.commit()
    db.refresh(member)
    roles.forget(user.id)
    logger.info("workspace_joined", workspace_id=str(workspace.id), user_id=str(user.id))
    return member


def list_members(db: Session, roles: RoleResolver, user: User, workspace_id: uuid.UUID) -> List[Member]:
    get_workspace(db, workspace_id)
    if roles.role(user.id, workspace_id) is None:
        raise Unauthorized("You must be a member of this workspace")
    return (
        db.query(Member)
        .options(joinedload(Member.user))
        .filter(Member.workspace_id == workspace_id)
        .order_by(Member.created_at)
        .all()
    )


def _get_member(db: Session, workspace_id: uuid.UUID, member_id: uuid.UUID) -> Member:
    member = (
        db.query(Member)
        .filter(Member.id == member_id, Member.workspace_id == workspace_id)
        .first()
    )
    if not member:
        raise NotFound("Member not found")
    return member


def add_member(
    db: Session,
    roles: RoleResolver,
    user: User,
    workspace_id: uuid.UUID,
    email: str,
    role: Role = Role.EMPLOYEE,
) -> Member:
    get_workspace(db, workspace_id)
    actor_role = roles.role(user.id, workspace_id)
    require(actor_role, Action.MANAGE_MEMBERS)
    target = db.query(User).filter(User.email == email.lower()).first()
    if not target:
        raise NotFound("User not found")
    existing = (
        db.query(Member)
        .filter(Member.user_id == target.id, Member.workspace_id == workspace_id)
        .first()
    )
    if existing:
        raise Conflict("User is already a member of this workspace")
    member = Member(user_id=target.id, workspace_id=workspace_id, role=role.value)
    db.add(member)
    db.flush()
    create_audit_log(
        db, "member", member.id, "CREATE",
        actor_id=user.id, actor_role=actor_role.value, source="api",
        context={"workspace_id": str(workspace_id), "user_id": str(target.id), "role": role.value},
        commit=False,
    )
    db.commit()
    db.refresh(member)
    roles.forget(target.id)
    return member


def update_member_role(
    db: Session,
    roles: RoleResolver,
    user: User,
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
    role: Role,
) -> Member:
    member = _get_member(db, workspace_id, member_id)
    actor_role = roles.role(user.id, workspace_id)
    require(actor_role, Action.MANAGE_MEMBERS)
    if member.user_id == user.id:
        raise BadRequest("Cannot update your own role")
    previous = member.role
    member.role = role.value
    member.updated_at = utcnow()
    create_audit_log(
        db, "member", member.id, "UPDATE",
        actor_id=user.id, actor_role=actor_role.value, source="api",
        changes_json={"role": {"before": previous, "after": role.value}},
        context={"workspace_id": str(workspace_id)},
        commit=False,
    )
    db.commit()
    db.refresh(member)
    roles.forget(member.user_id)
    return member


def remove_member(
    db: Session,
    roles: RoleResolver,
    user: User,
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
) -> None:
    member = _get_member(db, workspace_id, member_id)
    actor_role = roles.role(user.id, workspace_id)
    require(actor_role, Action.MANAGE_MEMBERS)
    if member.user_id == user.id:
        raise BadRequest("Cannot delete yourself")
    create_audit_log(
        db, "member", member.id, "DELETE",
        actor_id=user.id, actor_role=actor_role.value, source="api",
        context={"workspace_id": str(workspace_id), "user_id": str(member.user_id), "role": member.role},
        commit=False,
    )
    removed_user_id = member.user_id
    db.delete(member)
    db.commit()
    roles.forget(removed_user_id)
