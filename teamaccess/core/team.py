"""
Core team data models, including the breakdown of how a user reaches a team.
"""

import enum
from datetime import datetime

from pydantic import BaseModel

from .roles import Role
from .uuid import UUID, UserID


class TeamData(BaseModel):
    team_id: UUID
    name: str
    created_at: datetime


class TeamMemberData(BaseModel):
    membership_id: UUID
    team_id: UUID
    user_id: UserID
    role: Role
    added_at: datetime


class AccessType(str, enum.Enum):
    DIRECT = "DIRECT"
    GROUP = "GROUP"
    BOTH = "BOTH"


class DirectAccessInfo(BaseModel):
    role: Role
    added_at: datetime


class GroupAccessInfo(BaseModel):
    group_id: UUID
    group_name: str
    role: Role
    assigned_at: datetime


class TeamAccessInfo(BaseModel):
    type: AccessType
    effective_role: Role
    direct_access: DirectAccessInfo | None = None
    group_access: list[GroupAccessInfo] = []
