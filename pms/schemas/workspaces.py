from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from ..services.roles import Role


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    image_url: Optional[str] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    image_url: Optional[str] = None


class MemberAdd(BaseModel):
    email: EmailStr
    role: Role = Role.EMPLOYEE


class MemberRoleUpdate(BaseModel):
    role: Role


class WorkspaceJoin(BaseModel):
    code: str = Field(min_length=1, max_length=32)
