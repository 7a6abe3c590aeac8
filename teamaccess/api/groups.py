"""
Group management.
"""

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from teamaccess.api.dependencies import (
    ActorDependency,
    DatabaseDependency,
    LoggerDependency,
    NotifierDependency,
)
from teamaccess.api.errors import enforce, unwrap
from teamaccess.core.group import UserGroupData
from teamaccess.core.models import GroupDetailResponse
from teamaccess.core.roles import Role
from teamaccess.core.uuid import UUID
from teamaccess.service import groups as groups_service
from teamaccess.service import guard

group_app = APIRouter(tags=["Group Management"])


@group_app.get(
    "/list",
    summary="List all groups",
    description=(
        "Retrieve a page of all groups, newest first, optionally searching "
        "names and descriptions. Requires system administrator privileges."
    ),
    responses={
        200: {"description": "List of groups."},
        403: {"description": "Not a system administrator."},
    },
)
async def list_groups(
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    search: str | None = None,
) -> list[UserGroupData]:
    log = log.bind(actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    groups = await groups_service.get_groups(
        conn=conn, log=log, limit=limit, offset=offset, search=search
    )

    return await groups_service.with_counts(groups=groups, conn=conn)


@group_app.get(
    "/mine",
    summary="List my groups",
    description="Retrieve the groups the caller is a member of.",
)
async def my_groups(
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[UserGroupData]:
    groups = await groups_service.get_user_groups(user_id=actor.actor_id, conn=conn)
    await log.adebug("api.groups.mine", number_of_groups=len(groups))
    return await groups_service.with_counts(groups=groups, conn=conn)


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    description=(
        "Retrieve a group by its ID, with its members and team access grants."
    ),
    responses={
        200: {"description": "Group details."},
        404: {"description": "Group not found."},
    },
)
async def get_group_by_id(
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupDetailResponse:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    group = await groups_service.read_details(group_id=group_id, conn=conn, log=log)

    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    members = await groups_service.get_group_members(group_id=group_id, conn=conn)
    team_access = await groups_service.get_group_team_access(
        group_id=group_id, conn=conn
    )

    return GroupDetailResponse(
        group=group,
        members=[m.to_core() for m in members],
        team_access=team_access,
    )


class GroupCreationRequest(BaseModel):
    """
    Request model for creating a new group.
    """

    name: str
    role: Role
    description: str | None = None


@group_app.put(
    "",
    summary="Create a new group",
    description=(
        "Create a new group with a default team role. "
        "Requires system administrator privileges."
    ),
    responses={
        200: {"description": "Group created successfully."},
        403: {"description": "Not a system administrator."},
        409: {"description": "Group name already taken."},
    },
)
async def create_group(
    content: GroupCreationRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> UserGroupData:
    log = log.bind(actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    group = unwrap(
        await groups_service.create_group(
            name=content.name,
            role=content.role,
            description=content.description,
            actor=actor,
            conn=conn,
            log=log,
        )
    )

    return group.to_core()


class GroupUpdateRequest(BaseModel):
    """
    Request model for updating a group. Omitted fields are left unchanged.
    """

    name: str | None = None
    description: str | None = None
    role: Role | None = None


@group_app.post(
    "/{group_id}",
    summary="Update a group",
    description=(
        "Change a group's name, description or default role. "
        "Requires group administrator or system administrator privileges."
    ),
    responses={
        200: {"description": "Group updated successfully."},
        403: {"description": "Not an administrator of this group."},
        404: {"description": "Group not found."},
        409: {"description": "Group name already taken."},
    },
)
async def update_group(
    group_id: UUID,
    content: GroupUpdateRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    notifier: NotifierDependency,
) -> UserGroupData:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(
        await guard.check_group_admin(actor=actor, group_id=group_id, conn=conn, log=log),
        log,
    )

    group = unwrap(
        await groups_service.update_group(
            group_id=group_id,
            actor=actor,
            conn=conn,
            log=log,
            name=content.name,
            description=content.description,
            role=content.role,
            notifier=notifier,
        )
    )

    return group.to_core()


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Delete a group along with its memberships and team access. "
        "Requires system administrator privileges."
    ),
    responses={
        200: {"description": "Group deleted successfully."},
        403: {"description": "Not a system administrator."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> bool:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    return unwrap(
        await groups_service.delete_group(
            group_id=group_id, actor=actor, conn=conn, log=log
        )
    )
