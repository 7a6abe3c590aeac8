"""
Pydantic models for request/responses to APIs.
"""

from pydantic import BaseModel

from .group import GroupMemberData, GroupTeamAccessData, UserGroupData
from .roles import Role
from .team import TeamData, TeamMemberData
from .uuid import UUID, UserID


class GroupDetailResponse(BaseModel):
    group: UserGroupData
    members: list[GroupMemberData]
    team_access: list[GroupTeamAccessData]


class TeamDetailResponse(BaseModel):
    team: TeamData
    members: list[TeamMemberData]
    groups: list[UserGroupData]


class EffectiveRoleResponse(BaseModel):
    team_id: UUID
    user_id: UserID
    # None when the user has no access to the team
    role: Role | None
