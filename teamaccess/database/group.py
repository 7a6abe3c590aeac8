"""
User group ORM: the groups themselves, their members, and the teams they
grant access to.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from teamaccess.core.group import GroupMemberData, GroupTeamAccessData, UserGroupData
from teamaccess.core.roles import Role
from teamaccess.core.uuid import UUID, UserID, uuid7


class UserGroup(SQLModel, table=True):
    __tablename__ = "user_group"

    group_id: UUID = Field(primary_key=True, default_factory=uuid7)

    # Case-sensitive and stored exactly as given.
    name: str = Field(unique=True)
    description: str | None = None
    # Default role; copied onto each team access grant when it is made.
    role: Role

    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(
        self, member_count: int | None = None, team_count: int | None = None
    ) -> UserGroupData:
        return UserGroupData(
            group_id=self.group_id,
            name=self.name,
            description=self.description,
            role=self.role,
            created_at=self.created_at,
            updated_at=self.updated_at,
            member_count=member_count,
            team_count=team_count,
        )


class UserGroupMember(SQLModel, table=True):
    """
    A record of a user's membership of a group. Group admins may manage the
    group's members and team access.
    """

    __tablename__ = "user_group_member"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    member_id: UUID = Field(primary_key=True, default_factory=uuid7)
    group_id: UUID = Field(
        foreign_key="user_group.group_id", ondelete="CASCADE", index=True
    )
    user_id: UserID = Field(index=True)
    is_admin: bool = False

    added_by: UserID
    added_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> GroupMemberData:
        return GroupMemberData(
            member_id=self.member_id,
            group_id=self.group_id,
            user_id=self.user_id,
            is_admin=self.is_admin,
            added_by=self.added_by,
            added_at=self.added_at,
        )


class UserGroupTeamAccess(SQLModel, table=True):
    """
    A grant giving every member of a group a role on a team.
    """

    __tablename__ = "user_group_team_access"
    __table_args__ = (UniqueConstraint("group_id", "team_id"),)

    access_id: UUID = Field(primary_key=True, default_factory=uuid7)
    group_id: UUID = Field(
        foreign_key="user_group.group_id", ondelete="CASCADE", index=True
    )
    team_id: UUID = Field(foreign_key="team.team_id", ondelete="CASCADE", index=True)
    role: Role

    assigned_by: UserID
    assigned_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self, team_name: str | None = None) -> GroupTeamAccessData:
        return GroupTeamAccessData(
            access_id=self.access_id,
            group_id=self.group_id,
            team_id=self.team_id,
            team_name=team_name,
            role=self.role,
            assigned_by=self.assigned_by,
            assigned_at=self.assigned_at,
        )
