"""
Team and direct team membership ORM.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from teamaccess.core.roles import Role
from teamaccess.core.team import TeamData, TeamMemberData
from teamaccess.core.uuid import UUID, UserID, uuid7


class Team(SQLModel, table=True):
    __tablename__ = "team"

    team_id: UUID = Field(primary_key=True, default_factory=uuid7)
    name: str
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> TeamData:
        return TeamData(
            team_id=self.team_id,
            name=self.name,
            created_at=self.created_at,
        )


class TeamMember(SQLModel, table=True):
    """
    A direct grant of a role on a team to a single user. At most one of
    these exists per (team, user) pair.
    """

    __tablename__ = "team_member"
    __table_args__ = (UniqueConstraint("team_id", "user_id"),)

    membership_id: UUID = Field(primary_key=True, default_factory=uuid7)
    team_id: UUID = Field(foreign_key="team.team_id", ondelete="CASCADE", index=True)
    user_id: UserID = Field(index=True)
    role: Role
    added_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> TeamMemberData:
        return TeamMemberData(
            membership_id=self.membership_id,
            team_id=self.team_id,
            user_id=self.user_id,
            role=self.role,
            added_at=self.added_at,
        )
