"""
Group membership management. Mounted under the group routes.
"""

from fastapi import APIRouter, Query
from pydantic import BaseModel

from teamaccess.api.dependencies import (
    ActorDependency,
    DatabaseDependency,
    LoggerDependency,
    NotifierDependency,
)
from teamaccess.api.errors import enforce, unwrap
from teamaccess.core.group import GroupMemberData
from teamaccess.core.uuid import UUID, UserID
from teamaccess.service import groups as groups_service
from teamaccess.service import guard

member_app = APIRouter(tags=["Group Membership"])


@member_app.get(
    "/{group_id}/members",
    summary="List group members",
    description="Retrieve a page of the members of a group.",
)
async def list_members(
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
) -> list[GroupMemberData]:
    members = await groups_service.get_group_members(
        group_id=group_id, conn=conn, limit=limit, offset=offset
    )
    await log.adebug(
        "api.members.listed", group_id=group_id, number_of_members=len(members)
    )
    return [m.to_core() for m in members]


class AddMemberRequest(BaseModel):
    user_id: UserID
    is_admin: bool = False


@member_app.put(
    "/{group_id}/members",
    summary="Add a member to a group",
    description=(
        "Add a user to a group, optionally as a group administrator. "
        "Requires group administrator or system administrator privileges."
    ),
    responses={
        200: {"description": "Member added."},
        403: {"description": "Not an administrator of this group."},
        404: {"description": "Group not found."},
        409: {"description": "User is already a member."},
    },
)
async def add_member(
    group_id: UUID,
    content: AddMemberRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    notifier: NotifierDependency,
) -> GroupMemberData:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(
        await guard.check_group_admin(actor=actor, group_id=group_id, conn=conn, log=log),
        log,
    )

    member = unwrap(
        await groups_service.add_member(
            group_id=group_id,
            user_id=content.user_id,
            is_admin=content.is_admin,
            actor=actor,
            conn=conn,
            log=log,
            notifier=notifier,
        )
    )

    return member.to_core()


@member_app.delete(
    "/{group_id}/members/{user_id}",
    summary="Remove a member from a group",
    description=(
        "Remove a user from a group. Group administrators cannot remove "
        "themselves or the last administrator; system administrators can. "
        "Requires group administrator or system administrator privileges."
    ),
    responses={
        200: {"description": "Member removed."},
        403: {"description": "Not permitted, or a protection rule applies."},
        404: {"description": "User is not a member."},
    },
)
async def remove_member(
    group_id: UUID,
    user_id: UserID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    notifier: NotifierDependency,
) -> bool:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(
        await guard.check_group_admin(actor=actor, group_id=group_id, conn=conn, log=log),
        log,
    )

    return unwrap(
        await groups_service.remove_member(
            group_id=group_id,
            user_id=user_id,
            actor=actor,
            conn=conn,
            log=log,
            notifier=notifier,
        )
    )


class SetAdminRequest(BaseModel):
    is_admin: bool


@member_app.post(
    "/{group_id}/members/{user_id}/admin",
    summary="Grant or revoke group administrator",
    description=(
        "Change whether a member administers the group. Revoking follows the "
        "same protections as removal. Requires group administrator or system "
        "administrator privileges."
    ),
    responses={
        200: {"description": "Admin flag updated."},
        403: {"description": "Not permitted, or a protection rule applies."},
        404: {"description": "User is not a member."},
    },
)
async def set_admin(
    group_id: UUID,
    user_id: UserID,
    content: SetAdminRequest,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupMemberData:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(
        await guard.check_group_admin(actor=actor, group_id=group_id, conn=conn, log=log),
        log,
    )

    member = unwrap(
        await groups_service.set_member_admin(
            group_id=group_id,
            user_id=user_id,
            is_admin=content.is_admin,
            actor=actor,
            conn=conn,
            log=log,
        )
    )

    return member.to_core()
