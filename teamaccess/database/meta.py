"""
Meta functionality for the database.
"""

from .audit import UserGroupAuditLog
from .group import UserGroup, UserGroupMember, UserGroupTeamAccess
from .team import Team, TeamMember

ALL_TABLES = (
    Team,
    TeamMember,
    UserGroup,
    UserGroupMember,
    UserGroupTeamAccess,
    UserGroupAuditLog,
)
