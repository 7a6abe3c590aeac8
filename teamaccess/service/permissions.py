"""
Resolution of a user's effective role on a team.

A user can reach a team in two ways: a direct team membership, and
membership of any number of user groups that have been granted access to the
team. The two paths are combined, not prioritized: the effective role is
simply the highest-ranked role over all of them. A VIEWER direct membership
therefore never hides an EDITOR grant arriving through a group.

Nothing here is cached. Every call reads the current state of the database,
so a membership change is visible to the very next check.
"""

from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.core.roles import Role, highest, meets_minimum
from teamaccess.core.team import (
    AccessType,
    DirectAccessInfo,
    GroupAccessInfo,
    TeamAccessInfo,
)
from teamaccess.core.uuid import UUID, UserID
from teamaccess.database.group import UserGroup, UserGroupMember, UserGroupTeamAccess
from teamaccess.database.team import TeamMember


class TeamGrants(NamedTuple):
    direct: TeamMember | None
    groups: list[GroupAccessInfo]

    @property
    def roles(self) -> list[Role]:
        roles = [group.role for group in self.groups]

        if self.direct is not None:
            roles.append(self.direct.role)

        return roles


async def get_team_grants(
    user_id: UserID, team_id: UUID, conn: AsyncSession
) -> TeamGrants:
    """
    Read every grant that gives `user_id` a role on `team_id`: their direct
    membership (if any) and one entry for each of their groups holding access
    to the team.
    """
    direct = (
        await conn.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .where(TeamMember.user_id == user_id)
        )
    ).scalar_one_or_none()

    rows = (
        await conn.execute(
            select(
                UserGroup.group_id,
                UserGroup.name,
                UserGroupTeamAccess.role,
                UserGroupTeamAccess.assigned_at,
            )
            .join(
                UserGroupTeamAccess,
                UserGroupTeamAccess.group_id == UserGroup.group_id,
            )
            .join(UserGroupMember, UserGroupMember.group_id == UserGroup.group_id)
            .where(UserGroupTeamAccess.team_id == team_id)
            .where(UserGroupMember.user_id == user_id)
            .order_by(UserGroupTeamAccess.assigned_at)
        )
    ).all()

    groups = [
        GroupAccessInfo(
            group_id=row.group_id,
            group_name=row.name,
            role=row.role,
            assigned_at=row.assigned_at,
        )
        for row in rows
    ]

    return TeamGrants(direct=direct, groups=groups)


async def resolve_effective_role(
    user_id: UserID,
    team_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Role | None:
    """
    The single role governing a user's authority on a team, or None if they
    have no access at all.
    """
    log = log.bind(user_id=user_id, team_id=team_id)

    grants = await get_team_grants(user_id=user_id, team_id=team_id, conn=conn)
    roles = grants.roles

    if not roles:
        await log.adebug("permissions.no_access")
        return None

    role = highest(roles)

    await log.adebug(
        "permissions.resolved",
        effective_role=role,
        direct=grants.direct is not None,
        number_of_groups=len(grants.groups),
    )

    return role


async def has_access(
    user_id: UserID,
    team_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> bool:
    role = await resolve_effective_role(
        user_id=user_id, team_id=team_id, conn=conn, log=log
    )
    return role is not None


async def has_minimum_role(
    user_id: UserID,
    team_id: UUID,
    minimum: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> bool:
    role = await resolve_effective_role(
        user_id=user_id, team_id=team_id, conn=conn, log=log
    )

    if role is None:
        return False

    return meets_minimum(role, minimum)


async def get_team_access_info(
    user_id: UserID,
    team_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> TeamAccessInfo | None:
    """
    Explain how a user reaches a team: directly, through groups, or both,
    with the contributing grants. Built from the same grants as
    `resolve_effective_role`, so the effective role always agrees with it.

    Returns
    -------
    TeamAccessInfo | None
        None if the user has no access to the team.
    """
    log = log.bind(user_id=user_id, team_id=team_id)

    grants = await get_team_grants(user_id=user_id, team_id=team_id, conn=conn)
    roles = grants.roles

    if not roles:
        await log.adebug("permissions.access_info.no_access")
        return None

    if grants.direct is not None and grants.groups:
        access_type = AccessType.BOTH
    elif grants.direct is not None:
        access_type = AccessType.DIRECT
    else:
        access_type = AccessType.GROUP

    direct_access = (
        DirectAccessInfo(role=grants.direct.role, added_at=grants.direct.added_at)
        if grants.direct is not None
        else None
    )

    info = TeamAccessInfo(
        type=access_type,
        effective_role=highest(roles),
        direct_access=direct_access,
        group_access=grants.groups,
    )

    await log.adebug(
        "permissions.access_info", type=info.type, effective_role=info.effective_role
    )

    return info
