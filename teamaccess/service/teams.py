"""
Service layer for teams and direct team membership.

Direct memberships are one of the two paths to a role on a team (the other
being user groups, see `teamaccess.service.groups`).
"""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.core.actor import Actor
from teamaccess.core.audit import AuditAction
from teamaccess.core.result import ErrorCode, Failure, Result, Success
from teamaccess.core.roles import Role
from teamaccess.core.uuid import UUID, UserID
from teamaccess.database.group import UserGroupTeamAccess
from teamaccess.database.team import Team, TeamMember

from . import audit as audit_service


async def create(
    name: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Team:
    """
    Create a new team.
    """
    team = Team(name=name, created_at=datetime.now(tz=timezone.utc))

    conn.add(team)
    await conn.flush()

    await log.ainfo("team.created", team_id=team.team_id, name=name)

    return team


async def read_by_id(team_id: UUID, conn: AsyncSession) -> Team | None:
    return await conn.get(Team, team_id)


async def get_team_list(conn: AsyncSession) -> list[Team]:
    result = await conn.execute(select(Team).order_by(Team.created_at.desc()))
    return list(result.scalars().all())


async def delete_team(
    team_id: UUID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[bool]:
    """
    Delete a team, along with its direct memberships and any group access
    grants that point at it. Each removed grant is audited as a revocation
    on its group before the delete.
    """
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    team = await read_by_id(team_id=team_id, conn=conn)

    if team is None:
        await log.ainfo("team.not_found")
        return Failure(ErrorCode.TEAM_NOT_FOUND)

    grants = (
        await conn.execute(
            select(UserGroupTeamAccess).where(UserGroupTeamAccess.team_id == team_id)
        )
    ).scalars()

    for access in grants.all():
        await audit_service.append(
            group_id=access.group_id,
            action=AuditAction.TEAM_ACCESS_REVOKED,
            target_type="team_access",
            target_id=team_id,
            details={
                "team_id": str(team_id),
                "role": Role(access.role).value,
                "team_deleted": True,
            },
            actor=actor,
            conn=conn,
            log=log,
        )

    await conn.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
    await conn.execute(
        delete(UserGroupTeamAccess).where(UserGroupTeamAccess.team_id == team_id)
    )
    await conn.delete(team)
    await conn.flush()

    await log.ainfo("team.deleted")

    return Success(True)


async def read_member(
    team_id: UUID, user_id: UserID, conn: AsyncSession
) -> TeamMember | None:
    result = await conn.execute(
        select(TeamMember)
        .where(TeamMember.team_id == team_id)
        .where(TeamMember.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_team_members(
    team_id: UUID,
    conn: AsyncSession,
    limit: int | None = None,
    offset: int | None = None,
) -> list[TeamMember]:
    stmt = (
        select(TeamMember)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.added_at)
    )

    if offset is not None:
        stmt = stmt.offset(offset)

    if limit is not None:
        stmt = stmt.limit(limit)

    result = await conn.execute(stmt)
    return list(result.scalars().all())


async def add_member(
    team_id: UUID,
    user_id: UserID,
    role: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[TeamMember]:
    """
    Give a user a role on a team directly.

    Returns
    -------
    Result[TeamMember]
        `TEAM_NOT_FOUND` if the team does not exist, `TEAM_MEMBER_EXISTS` if
        the user already has a direct membership on this team.
    """
    log = log.bind(team_id=team_id, user_id=user_id, role=role)

    if await read_by_id(team_id=team_id, conn=conn) is None:
        await log.ainfo("team.not_found")
        return Failure(ErrorCode.TEAM_NOT_FOUND)

    member = TeamMember(
        team_id=team_id,
        user_id=user_id,
        role=role,
        added_at=datetime.now(tz=timezone.utc),
    )

    try:
        async with conn.begin_nested():
            conn.add(member)
            await conn.flush()
    except IntegrityError as e:
        await log.ainfo("team.member_exists", error=str(e))
        return Failure(ErrorCode.TEAM_MEMBER_EXISTS)

    await log.ainfo("team.member_added", membership_id=member.membership_id)

    return Success(member)


async def update_member_role(
    team_id: UUID,
    user_id: UserID,
    role: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[TeamMember]:
    log = log.bind(team_id=team_id, user_id=user_id, role=role)

    member = await read_member(team_id=team_id, user_id=user_id, conn=conn)

    if member is None:
        await log.ainfo("team.member_not_found")
        return Failure(ErrorCode.TEAM_MEMBER_NOT_FOUND)

    log = log.bind(previous_role=member.role)

    member.role = role
    conn.add(member)
    await conn.flush()

    await log.ainfo("team.member_role_updated")

    return Success(member)


async def remove_member(
    team_id: UUID,
    user_id: UserID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[bool]:
    log = log.bind(team_id=team_id, user_id=user_id)

    member = await read_member(team_id=team_id, user_id=user_id, conn=conn)

    if member is None:
        await log.ainfo("team.member_not_found")
        return Failure(ErrorCode.TEAM_MEMBER_NOT_FOUND)

    await conn.delete(member)
    await conn.flush()

    await log.ainfo("team.member_removed")

    return Success(True)
