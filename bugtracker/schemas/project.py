from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    """Per-project role of a team member."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    DEVELOPER = "Developer"
    VIEWER = "Viewer"


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class MemberAdd(BaseModel):
    email: EmailStr
    role: Role = Role.DEVELOPER
