"""
Core user group data models.
"""

from datetime import datetime

from pydantic import BaseModel

from .roles import Role
from .uuid import UUID, UserID


class UserGroupData(BaseModel):
    group_id: UUID
    name: str
    description: str | None
    role: Role
    created_at: datetime
    updated_at: datetime
    member_count: int | None = None
    team_count: int | None = None


class GroupMemberData(BaseModel):
    member_id: UUID
    group_id: UUID
    user_id: UserID
    is_admin: bool
    added_by: UserID
    added_at: datetime


class GroupTeamAccessData(BaseModel):
    access_id: UUID
    group_id: UUID
    team_id: UUID
    # Joined from the team table for display
    team_name: str | None = None
    role: Role
    assigned_by: UserID
    assigned_at: datetime
