"""
Teams, their direct members, and the groups granted access to them.
"""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.api.dependencies import (
    ActorDependency,
    DatabaseDependency,
    LoggerDependency,
    NotifierDependency,
)
from teamaccess.api.errors import enforce, unwrap
from teamaccess.core.actor import Actor
from teamaccess.core.group import GroupTeamAccessData
from teamaccess.core.models import EffectiveRoleResponse, TeamDetailResponse
from teamaccess.core.roles import Role
from teamaccess.core.team import TeamAccessInfo, TeamData, TeamMemberData
from teamaccess.core.uuid import UUID, UserID
from teamaccess.service import groups as groups_service
from teamaccess.service import guard
from teamaccess.service import permissions as permissions_service
from teamaccess.service import teams as teams_service

team_app = APIRouter(tags=["Team Access"])


async def _enforce_team_owner(
    actor: Actor,
    team_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    System administrators and team owners may manage a team.
    """
    if actor.is_system_admin:
        return

    await enforce(
        await guard.check_team_role(
            actor=actor,
            team_id=team_id,
            required_roles=[Role.OWNER],
            conn=conn,
            log=log,
        ),
        log,
    )


@team_app.get(
    "/list",
    summary="List all teams",
    description="Retrieve all teams. Requires system administrator privileges.",
)
async def list_teams(
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[TeamData]:
    await enforce(guard.check_system_admin(actor), log)

    teams = await teams_service.get_team_list(conn=conn)

    return [t.to_core() for t in teams]


class TeamCreationRequest(BaseModel):
    name: str


@team_app.put(
    "",
    summary="Create a new team",
    description="Create a team. Requires system administrator privileges.",
    responses={
        200: {"description": "Team created."},
        403: {"description": "Not a system administrator."},
    },
)
async def create_team(
    content: TeamCreationRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamData:
    log = log.bind(actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    team = await teams_service.create(name=content.name, conn=conn, log=log)

    return team.to_core()


@team_app.get(
    "/{team_id}",
    summary="Get team by ID",
    description=(
        "Retrieve a team with its direct members and the groups that have "
        "access to it. Requires any role on the team, or system administrator "
        "privileges."
    ),
    responses={
        200: {"description": "Team details."},
        403: {"description": "No access to this team."},
        404: {"description": "Team not found."},
    },
)
async def get_team_by_id(
    team_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamDetailResponse:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    team = await teams_service.read_by_id(team_id=team_id, conn=conn)

    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    if not actor.is_system_admin:
        await enforce(
            await guard.check_team_role(
                actor=actor, team_id=team_id, required_roles=Role, conn=conn, log=log
            ),
            log,
        )

    members = await teams_service.get_team_members(team_id=team_id, conn=conn)
    groups = await groups_service.get_team_groups(team_id=team_id, conn=conn)

    return TeamDetailResponse(
        team=team.to_core(),
        members=[m.to_core() for m in members],
        groups=await groups_service.with_counts(groups=groups, conn=conn),
    )


@team_app.delete(
    "/{team_id}",
    summary="Delete a team",
    description=(
        "Delete a team with its direct memberships and group access grants. "
        "Requires system administrator privileges."
    ),
    responses={
        200: {"description": "Team deleted."},
        403: {"description": "Not a system administrator."},
        404: {"description": "Team not found."},
    },
)
async def delete_team(
    team_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> bool:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    return unwrap(
        await teams_service.delete_team(
            team_id=team_id, actor=actor, conn=conn, log=log
        )
    )


@team_app.put(
    "/{team_id}/groups/{group_id}",
    summary="Grant a group access to a team",
    description=(
        "Give every member of a group the group's role on this team. "
        "Requires system administrator privileges."
    ),
    responses={
        200: {"description": "Access granted."},
        403: {"description": "Not a system administrator."},
        404: {"description": "Group or team not found."},
        409: {"description": "The group already has access to this team."},
    },
)
async def assign_group(
    team_id: UUID,
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    notifier: NotifierDependency,
) -> GroupTeamAccessData:
    log = log.bind(team_id=team_id, group_id=group_id, actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    access = unwrap(
        await groups_service.assign_to_team(
            group_id=group_id,
            team_id=team_id,
            actor=actor,
            conn=conn,
            log=log,
            notifier=notifier,
        )
    )

    return access.to_core()


@team_app.delete(
    "/{team_id}/groups/{group_id}",
    summary="Revoke a group's access to a team",
    description="Requires system administrator privileges.",
    responses={
        200: {"description": "Access revoked."},
        403: {"description": "Not a system administrator."},
        404: {"description": "The group has no access to this team."},
    },
)
async def revoke_group(
    team_id: UUID,
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> bool:
    log = log.bind(team_id=team_id, group_id=group_id, actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    return unwrap(
        await groups_service.revoke_from_team(
            group_id=group_id, team_id=team_id, actor=actor, conn=conn, log=log
        )
    )


@team_app.get(
    "/{team_id}/members",
    summary="List direct team members",
    description="Requires any role on the team, or system administrator privileges.",
)
async def list_team_members(
    team_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
) -> list[TeamMemberData]:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    if not actor.is_system_admin:
        await enforce(
            await guard.check_team_role(
                actor=actor, team_id=team_id, required_roles=Role, conn=conn, log=log
            ),
            log,
        )

    members = await teams_service.get_team_members(
        team_id=team_id, conn=conn, limit=limit, offset=offset
    )

    return [m.to_core() for m in members]


class TeamMemberRequest(BaseModel):
    role: Role


@team_app.put(
    "/{team_id}/members/{user_id}",
    summary="Add a direct team member",
    description="Requires the OWNER role on the team, or system administrator privileges.",
    responses={
        200: {"description": "Member added."},
        403: {"description": "Not an owner of this team."},
        404: {"description": "Team not found."},
        409: {"description": "User is already a direct member."},
    },
)
async def add_team_member(
    team_id: UUID,
    user_id: UserID,
    content: TeamMemberRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamMemberData:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    await _enforce_team_owner(actor=actor, team_id=team_id, conn=conn, log=log)

    member = unwrap(
        await teams_service.add_member(
            team_id=team_id, user_id=user_id, role=content.role, conn=conn, log=log
        )
    )

    return member.to_core()


@team_app.post(
    "/{team_id}/members/{user_id}",
    summary="Change a direct team member's role",
    description="Requires the OWNER role on the team, or system administrator privileges.",
    responses={
        200: {"description": "Role changed."},
        403: {"description": "Not an owner of this team."},
        404: {"description": "User is not a direct member."},
    },
)
async def update_team_member(
    team_id: UUID,
    user_id: UserID,
    content: TeamMemberRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamMemberData:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    await _enforce_team_owner(actor=actor, team_id=team_id, conn=conn, log=log)

    member = unwrap(
        await teams_service.update_member_role(
            team_id=team_id, user_id=user_id, role=content.role, conn=conn, log=log
        )
    )

    return member.to_core()


@team_app.delete(
    "/{team_id}/members/{user_id}",
    summary="Remove a direct team member",
    description=(
        "Remove a direct membership. Access the user holds through groups is "
        "unaffected. Requires the OWNER role on the team, or system "
        "administrator privileges."
    ),
    responses={
        200: {"description": "Member removed."},
        403: {"description": "Not an owner of this team."},
        404: {"description": "User is not a direct member."},
    },
)
async def remove_team_member(
    team_id: UUID,
    user_id: UserID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> bool:
    log = log.bind(team_id=team_id, actor_id=actor.actor_id)

    await _enforce_team_owner(actor=actor, team_id=team_id, conn=conn, log=log)

    return unwrap(
        await teams_service.remove_member(
            team_id=team_id, user_id=user_id, conn=conn, log=log
        )
    )


@team_app.get(
    "/{team_id}/role",
    summary="My effective role on a team",
    description=(
        "The highest role the caller holds on the team over their direct "
        "membership and all of their groups; null if they have no access."
    ),
)
async def my_effective_role(
    team_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> EffectiveRoleResponse:
    role = await permissions_service.resolve_effective_role(
        user_id=actor.actor_id, team_id=team_id, conn=conn, log=log
    )

    return EffectiveRoleResponse(team_id=team_id, user_id=actor.actor_id, role=role)


@team_app.get(
    "/{team_id}/access",
    summary="How I reach a team",
    description="Breakdown of the caller's direct and group access to a team.",
    responses={
        200: {"description": "Access breakdown."},
        404: {"description": "No access to this team."},
    },
)
async def my_access_info(
    team_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamAccessInfo:
    info = await permissions_service.get_team_access_info(
        user_id=actor.actor_id, team_id=team_id, conn=conn, log=log
    )

    if info is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    return info


@team_app.get(
    "/{team_id}/access/{user_id}",
    summary="How a user reaches a team",
    description=(
        "Breakdown of a user's direct and group access to a team. Requires "
        "the OWNER role on the team, or system administrator privileges."
    ),
    responses={
        200: {"description": "Access breakdown."},
        403: {"description": "Not an owner of this team."},
        404: {"description": "The user has no access to this team."},
    },
)
async def user_access_info(
    team_id: UUID,
    user_id: UserID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> TeamAccessInfo:
    log = log.bind(actor_id=actor.actor_id)

    await _enforce_team_owner(actor=actor, team_id=team_id, conn=conn, log=log)

    info = await permissions_service.get_team_access_info(
        user_id=user_id, team_id=team_id, conn=conn, log=log
    )

    if info is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    return info
