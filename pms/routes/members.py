import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import get_current_user, get_roles
from ..models.models import User
from ..services.permissions import Action, can_perform
from ..services.roles import RoleResolver


router = APIRouter(prefix="/members", tags=["members"])


@router.get("/role")
def get_my_role(
    workspace_id: Optional[uuid.UUID] = None,
    me: User = Depends(get_current_user),
    roles: RoleResolver = Depends(get_roles),
):
    """Role used to drive navigation: per workspace when given, otherwise global."""
    role = roles.role(me.id, workspace_id) if workspace_id else roles.global_role(me.id)
    return {
        "data": {
            "role": role.value if role else None,
            "role_display": role.display_name if role else None,
            "workspace_id": str(workspace_id) if workspace_id else None,
            "permissions": [action.value for action in Action if can_perform(role, action)],
        }
    }
