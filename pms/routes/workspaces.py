import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, get_roles
from ..db import get_db
from ..models.models import Member, User, Workspace
from ..schemas.workspaces import MemberAdd, MemberRoleUpdate, WorkspaceCreate, WorkspaceJoin, WorkspaceUpdate
from ..services import workspaces as workspace_service
from ..services.roles import Role, RoleResolver


router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _serialize_workspace(ws: Workspace, role: Optional[Role] = None) -> Dict[str, Any]:
    return {
        "id": str(ws.id),
        "name": ws.name,
        "image_url": ws.image_url,
        "invite_code": ws.invite_code,
        "owner_id": str(ws.owner_id),
        "role": role.value if role else None,
        "created_at": ws.created_at.isoformat(),
        "updated_at": ws.updated_at.isoformat(),
    }


def _serialize_member(member: Member) -> Dict[str, Any]:
    role = Role.parse(member.role)
    return {
        "id": str(member.id),
        "workspace_id": str(member.workspace_id),
        "user_id": str(member.user_id),
        "name": member.user.name if member.user else None,
        "email": member.user.email if member.user else None,
        "role": role.value if role else member.role,
        "role_display": role.display_name if role else member.role,
        "created_at": member.created_at.isoformat(),
    }


@router.post("")
def create_workspace(payload: WorkspaceCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    ws = workspace_service.create_workspace(db, me, payload.name, payload.image_url)
    return {"data": _serialize_workspace(ws, Role.ADMIN)}


@router.get("")
def list_workspaces(db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    rows = workspace_service.list_user_workspaces(db, me)
    items = [_serialize_workspace(ws, role) for ws, role in rows]
    return {"data": {"documents": items, "total": len(items)}}


@router.patch("/{workspace_id}")
def update_workspace(
    workspace_id: uuid.UUID,
    payload: WorkspaceUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    ws = workspace_service.update_workspace(db, roles, me, workspace_id, name=payload.name, image_url=payload.image_url)
    return {"data": _serialize_workspace(ws, roles.role(me.id, ws.id))}


@router.post("/{workspace_id}/reset-invite-code")
def reset_invite_code(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    ws = workspace_service.reset_invite_code(db, roles, me, workspace_id)
    return {"data": _serialize_workspace(ws, roles.role(me.id, ws.id))}


@router.post("/{workspace_id}/join")
def join_workspace(
    workspace_id: uuid.UUID,
    payload: WorkspaceJoin,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    member = workspace_service.join_workspace(db, roles, me, workspace_id, payload.code)
    return {"data": _serialize_member(member)}


@router.get("/{workspace_id}/members")
def list_members(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    members = workspace_service.list_members(db, roles, me, workspace_id)
    items = [_serialize_member(m) for m in members]
    return {"data": {"documents": items, "total": len(items)}}


@router.post("/{workspace_id}/members")
def add_member(
    workspace_id: uuid.UUID,
    payload: MemberAdd,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    member = workspace_service.add_member(db, roles, me, workspace_id, payload.email, payload.role)
    return {"data": _serialize_member(member)}


@router.patch("/{workspace_id}/members/{member_id}")
def update_member_role(
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: MemberRoleUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    member = workspace_service.update_member_role(db, roles, me, workspace_id, member_id, payload.role)
    return {"data": _serialize_member(member)}


@router.delete("/{workspace_id}/members/{member_id}")
def remove_member(
    workspace_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    workspace_service.remove_member(db, roles, me, workspace_id, member_id)
    return {"data": {"id": str(member_id)}}
