"""
Service layer for user groups.

Every mutation here takes the acting user, writes its audit log entry in the
same transaction as the change itself, and reports predictable failures as a
`Failure` rather than raising. Nothing here commits: the caller's transaction
decides whether the change (and with it the audit entry) becomes durable.
Change notifications are queued and only published once that transaction has
committed.

Uniqueness (group names, one membership per user per group, one grant per
group per team) is enforced by the database. Inserts run inside a SAVEPOINT
so that a constraint violation, including one caused by a concurrent request,
is translated into the matching failure without poisoning the caller's
transaction.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.core.actor import Actor
from teamaccess.core.audit import AuditAction
from teamaccess.core.group import GroupTeamAccessData, UserGroupData
from teamaccess.core.result import ErrorCode, Failure, Result, Success
from teamaccess.core.roles import Role
from teamaccess.core.uuid import UUID, UserID
from teamaccess.database.group import UserGroup, UserGroupMember, UserGroupTeamAccess
from teamaccess.database.team import Team

from . import audit as audit_service
from . import notifications
from .notifications import Notifier


def _snapshot(group: UserGroup) -> dict[str, str | None]:
    return {
        "name": group.name,
        "description": group.description,
        "role": Role(group.role).value,
    }


async def read_by_id(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> UserGroup | None:
    """
    Read a group by its ID, or None if there is no such group.
    """
    group = await conn.get(UserGroup, group_id)

    if group is None:
        await log.adebug("group.not_found", group_id=group_id)

    return group


async def read_by_name(
    name: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> UserGroup | None:
    """
    Read a group by its (case-sensitive) name, or None if there is no such
    group.
    """
    result = await conn.execute(select(UserGroup).where(UserGroup.name == name))
    group = result.scalar_one_or_none()

    if group is None:
        await log.adebug("group.not_found", name=name)

    return group


async def _lock_group(group_id: UUID, conn: AsyncSession) -> UserGroup | None:
    """
    Read a group, taking a row lock on it for the rest of the transaction.
    Operations that count admins before removing one take this lock first, so
    that two of them on the same group cannot both pass the count.
    """
    result = await conn.execute(
        select(UserGroup).where(UserGroup.group_id == group_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def create_group(
    name: str,
    role: Role,
    description: str | None,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[UserGroup]:
    """
    Create a new group.

    Parameters
    ----------
    name: str
        The name of the group. Must not be used by any other group.
    role: Role
        The default role that members receive on teams the group is
        assigned to.
    description: str | None
        Optional free-text description.
    actor: Actor
        The user creating the group.

    Returns
    -------
    Result[UserGroup]
        `NAME_TAKEN` if a group with this name already exists.
    """
    log = log.bind(name=name, role=role, actor_id=actor.actor_id)

    if await read_by_name(name=name, conn=conn, log=log) is not None:
        await log.ainfo("group.name_taken")
        return Failure(ErrorCode.NAME_TAKEN)

    now = datetime.now(tz=timezone.utc)

    group = UserGroup(
        name=name,
        description=description,
        role=role,
        created_at=now,
        updated_at=now,
    )

    try:
        async with conn.begin_nested():
            conn.add(group)
            await conn.flush()
    except IntegrityError as e:
        await log.ainfo("group.name_taken", error=str(e))
        return Failure(ErrorCode.NAME_TAKEN)

    await audit_service.append(
        group_id=group.group_id,
        action=AuditAction.GROUP_CREATED,
        target_type="group",
        target_id=group.group_id,
        details=_snapshot(group),
        actor=actor,
        conn=conn,
        log=log,
    )

    await log.ainfo("group.created", group_id=group.group_id)

    return Success(group)


async def update_group(
    group_id: UUID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    name: str | None = None,
    description: str | None = None,
    role: Role | None = None,
    notifier: Notifier | None = None,
) -> Result[UserGroup]:
    """
    Update any of a group's name, description and default role. Fields left
    as None are not changed.

    Changing the default role does not touch existing team access grants;
    they keep the role they were given when assigned.

    Returns
    -------
    Result[UserGroup]
        `NOT_FOUND` if the group does not exist, `NAME_TAKEN` if the new
        name is used by another group.
    """
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if group is None:
        return Failure(ErrorCode.NOT_FOUND)

    before = _snapshot(group)
    changes = {
        key: value
        for key, value in {
            "name": name,
            "description": description,
            "role": Role(role).value if role is not None else None,
        }.items()
        if value is not None
    }

    log = log.bind(changes=changes)

    if name is not None and name != group.name:
        if await read_by_name(name=name, conn=conn, log=log) is not None:
            await log.ainfo("group.name_taken")
            return Failure(ErrorCode.NAME_TAKEN)

    try:
        async with conn.begin_nested():
            if name is not None:
                group.name = name
            if description is not None:
                group.description = description
            if role is not None:
                group.role = role

            group.updated_at = datetime.now(tz=timezone.utc)

            conn.add(group)
            await conn.flush()
    except IntegrityError as e:
        # The rolled back SAVEPOINT leaves our in-memory copy stale.
        await conn.refresh(group)
        await log.ainfo("group.name_taken", error=str(e))
        return Failure(ErrorCode.NAME_TAKEN)

    await audit_service.append(
        group_id=group.group_id,
        action=AuditAction.GROUP_UPDATED,
        target_type="group",
        target_id=group.group_id,
        details={"changes": changes, "before": before},
        actor=actor,
        conn=conn,
        log=log,
    )

    notifications.publish_after_commit(
        conn=conn,
        notifier=notifier,
        topic=notifications.group_topic(group.group_id, notifications.GROUP_UPDATED),
        payload=group.to_core(),
        log=log,
    )

    await log.ainfo("group.updated")

    return Success(group)


async def delete_group(
    group_id: UUID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[bool]:
    """
    Delete a group, its memberships and its team access grants. The audit
    entry is written first, while the group's details can still be read.

    Returns
    -------
    Result[bool]
        `NOT_FOUND` if the group does not exist.
    """
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if group is None:
        return Failure(ErrorCode.NOT_FOUND)

    member_count = await count_members(group_id=group_id, conn=conn)

    await audit_service.append(
        group_id=group_id,
        action=AuditAction.GROUP_DELETED,
        target_type="group",
        target_id=group_id,
        details={"name": group.name, "member_count": member_count},
        actor=actor,
        conn=conn,
        log=log,
    )

    await conn.execute(
        delete(UserGroupTeamAccess).where(UserGroupTeamAccess.group_id == group_id)
    )
    await conn.execute(
        delete(UserGroupMember).where(UserGroupMember.group_id == group_id)
    )
    await conn.delete(group)
    await conn.flush()

    await log.ainfo("group.deleted", member_count=member_count)

    return Success(True)


async def add_member(
    group_id: UUID,
    user_id: UserID,
    is_admin: bool,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    notifier: Notifier | None = None,
) -> Result[UserGroupMember]:
    """
    Add a user to a group.

    Returns
    -------
    Result[UserGroupMember]
        `NOT_FOUND` if the group does not exist, `MEMBER_EXISTS` if the user
        is already a member.
    """
    log = log.bind(
        group_id=group_id, user_id=user_id, is_admin=is_admin, actor_id=actor.actor_id
    )

    if await read_by_id(group_id=group_id, conn=conn, log=log) is None:
        return Failure(ErrorCode.NOT_FOUND)

    member = UserGroupMember(
        group_id=group_id,
        user_id=user_id,
        is_admin=is_admin,
        added_by=actor.actor_id,
        added_at=datetime.now(tz=timezone.utc),
    )

    try:
        async with conn.begin_nested():
            conn.add(member)
            await conn.flush()
    except IntegrityError as e:
        await log.ainfo("group.member_exists", error=str(e))
        return Failure(ErrorCode.MEMBER_EXISTS)

    await audit_service.append(
        group_id=group_id,
        action=AuditAction.MEMBER_ADDED,
        target_type="member",
        target_id=member.member_id,
        details={"user_id": user_id, "is_admin": is_admin},
        actor=actor,
        conn=conn,
        log=log,
    )

    notifications.publish_after_commit(
        conn=conn,
        notifier=notifier,
        topic=notifications.group_topic(group_id, notifications.MEMBER_ADDED),
        payload=member.to_core(),
        log=log,
    )

    await log.ainfo("group.member_added", member_id=member.member_id)

    return Success(member)


async def _check_admin_removal(
    group_id: UUID,
    member: UserGroupMember,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Failure | None:
    """
    The protections applied whenever an admin is about to stop being one,
    either by leaving the group or by being demoted. System administrators
    bypass both. The caller must hold the group lock.
    """
    if not member.is_admin or actor.is_system_admin:
        return None

    if member.user_id == actor.actor_id:
        await log.ainfo("group.cannot_remove_self")
        return Failure(ErrorCode.CANNOT_REMOVE_SELF)

    if await count_admins(group_id=group_id, conn=conn) <= 1:
        await log.ainfo("group.last_admin")
        return Failure(ErrorCode.LAST_ADMIN)

    return None


async def remove_member(
    group_id: UUID,
    user_id: UserID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    notifier: Notifier | None = None,
) -> Result[bool]:
    """
    Remove a user from a group.

    Unless the actor is a system administrator, an admin may not remove
    themselves, and the group's last admin may not be removed.

    Returns
    -------
    Result[bool]
        `MEMBER_NOT_FOUND` if the user is not a member, `CANNOT_REMOVE_SELF`
        or `LAST_ADMIN` if a protection applies.
    """
    log = log.bind(group_id=group_id, user_id=user_id, actor_id=actor.actor_id)

    await _lock_group(group_id=group_id, conn=conn)

    member = await read_member(group_id=group_id, user_id=user_id, conn=conn)

    if member is None:
        await log.ainfo("group.member_not_found")
        return Failure(ErrorCode.MEMBER_NOT_FOUND)

    rejection = await _check_admin_removal(
        group_id=group_id, member=member, actor=actor, conn=conn, log=log
    )

    if rejection is not None:
        return rejection

    await audit_service.append(
        group_id=group_id,
        action=AuditAction.MEMBER_REMOVED,
        target_type="member",
        target_id=user_id,
        details={"user_id": user_id, "was_admin": member.is_admin},
        actor=actor,
        conn=conn,
        log=log,
    )

    await conn.delete(member)
    await conn.flush()

    notifications.publish_after_commit(
        conn=conn,
        notifier=notifier,
        topic=notifications.group_topic(group_id, notifications.MEMBER_REMOVED),
        payload=user_id,
        log=log,
    )

    await log.ainfo("group.member_removed")

    return Success(True)


async def set_member_admin(
    group_id: UUID,
    user_id: UserID,
    is_admin: bool,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[UserGroupMember]:
    """
    Grant or revoke a member's admin flag. Revoking is subject to the same
    self and last-admin protections as `remove_member`. Asking for the flag
    the member already has succeeds without writing anything.

    Returns
    -------
    Result[UserGroupMember]
        `MEMBER_NOT_FOUND` if the user is not a member, `CANNOT_REMOVE_SELF`
        or `LAST_ADMIN` if a protection applies.
    """
    log = log.bind(
        group_id=group_id, user_id=user_id, is_admin=is_admin, actor_id=actor.actor_id
    )

    await _lock_group(group_id=group_id, conn=conn)

    member = await read_member(group_id=group_id, user_id=user_id, conn=conn)

    if member is None:
        await log.ainfo("group.member_not_found")
        return Failure(ErrorCode.MEMBER_NOT_FOUND)

    if member.is_admin == is_admin:
        await log.adebug("group.admin_unchanged")
        return Success(member)

    if not is_admin:
        rejection = await _check_admin_removal(
            group_id=group_id, member=member, actor=actor, conn=conn, log=log
        )

        if rejection is not None:
            return rejection

    member.is_admin = is_admin
    conn.add(member)
    await conn.flush()

    await audit_service.append(
        group_id=group_id,
        action=(
            AuditAction.MEMBER_ADMIN_GRANTED
            if is_admin
            else AuditAction.MEMBER_ADMIN_REVOKED
        ),
        target_type="member",
        target_id=member.member_id,
        details={"user_id": user_id},
        actor=actor,
        conn=conn,
        log=log,
    )

    await log.ainfo("group.admin_granted" if is_admin else "group.admin_revoked")

    return Success(member)


async def assign_to_team(
    group_id: UUID,
    team_id: UUID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    notifier: Notifier | None = None,
) -> Result[UserGroupTeamAccess]:
    """
    Grant every member of a group the group's default role on a team.

    Returns
    -------
    Result[UserGroupTeamAccess]
        `NOT_FOUND` if the group does not exist, `TEAM_NOT_FOUND` if the team
        does not exist, `ACCESS_EXISTS` if the group already has access to
        the team.
    """
    log = log.bind(group_id=group_id, team_id=team_id, actor_id=actor.actor_id)

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if group is None:
        return Failure(ErrorCode.NOT_FOUND)

    if await conn.get(Team, team_id) is None:
        await log.ainfo("group.team_not_found")
        return Failure(ErrorCode.TEAM_NOT_FOUND)

    access = UserGroupTeamAccess(
        group_id=group_id,
        team_id=team_id,
        role=group.role,
        assigned_by=actor.actor_id,
        assigned_at=datetime.now(tz=timezone.utc),
    )

    try:
        async with conn.begin_nested():
            conn.add(access)
            await conn.flush()
    except IntegrityError as e:
        await log.ainfo("group.team_access_exists", error=str(e))
        return Failure(ErrorCode.ACCESS_EXISTS)

    await audit_service.append(
        group_id=group_id,
        action=AuditAction.TEAM_ACCESS_GRANTED,
        target_type="team_access",
        target_id=access.access_id,
        details={"team_id": str(team_id), "role": Role(access.role).value},
        actor=actor,
        conn=conn,
        log=log,
    )

    notifications.publish_after_commit(
        conn=conn,
        notifier=notifier,
        topic=notifications.group_topic(group_id, notifications.TEAM_ACCESS_CHANGED),
        payload=access.to_core(),
        log=log,
    )

    await log.ainfo("group.team_access_granted", access_id=access.access_id)

    return Success(access)


async def revoke_from_team(
    group_id: UUID,
    team_id: UUID,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Result[bool]:
    """
    Remove a group's access to a team.

    Returns
    -------
    Result[bool]
        `ACCESS_NOT_FOUND` if the group has no access to the team.
    """
    log = log.bind(group_id=group_id, team_id=team_id, actor_id=actor.actor_id)

    result = await conn.execute(
        select(UserGroupTeamAccess)
        .where(UserGroupTeamAccess.group_id == group_id)
        .where(UserGroupTeamAccess.team_id == team_id)
    )
    access = result.scalar_one_or_none()

    if access is None:
        await log.ainfo("group.team_access_not_found")
        return Failure(ErrorCode.ACCESS_NOT_FOUND)

    await audit_service.append(
        group_id=group_id,
        action=AuditAction.TEAM_ACCESS_REVOKED,
        target_type="team_access",
        target_id=team_id,
        details={"team_id": str(team_id), "role": Role(access.role).value},
        actor=actor,
        conn=conn,
        log=log,
    )

    await conn.delete(access)
    await conn.flush()

    await log.ainfo("group.team_access_revoked")

    return Success(True)


async def get_groups(
    conn: AsyncSession,
    log: FilteringBoundLogger,
    limit: int | None = None,
    offset: int | None = None,
    search: str | None = None,
) -> list[UserGroup]:
    """
    List groups, newest first, optionally filtered by a case-insensitive
    search over name and description.
    """
    log = log.bind(limit=limit, offset=offset, search=search)

    stmt = select(UserGroup)

    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(UserGroup.name.ilike(pattern), UserGroup.description.ilike(pattern))
        )

    stmt = stmt.order_by(UserGroup.created_at.desc(), UserGroup.group_id.desc())

    if offset is not None:
        stmt = stmt.offset(offset)

    if limit is not None:
        stmt = stmt.limit(limit)

    result = await conn.execute(stmt)
    groups = result.scalars().all()

    await log.adebug("group.listed", number_of_groups=len(groups))

    return list(groups)


async def read_details(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> UserGroupData | None:
    """
    Read a group along with the number of members and teams it has.
    """
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if group is None:
        return None

    return group.to_core(
        member_count=await count_members(group_id=group_id, conn=conn),
        team_count=await count_teams(group_id=group_id, conn=conn),
    )


async def with_counts(
    groups: list[UserGroup], conn: AsyncSession
) -> list[UserGroupData]:
    """
    Convert groups to their core representation with member and team counts,
    using one grouped count query per table.
    """
    group_ids = [g.group_id for g in groups]

    if not group_ids:
        return []

    member_counts = dict(
        (
            await conn.execute(
                select(UserGroupMember.group_id, func.count())
                .where(UserGroupMember.group_id.in_(group_ids))
                .group_by(UserGroupMember.group_id)
            )
        ).all()
    )
    team_counts = dict(
        (
            await conn.execute(
                select(UserGroupTeamAccess.group_id, func.count())
                .where(UserGroupTeamAccess.group_id.in_(group_ids))
                .group_by(UserGroupTeamAccess.group_id)
            )
        ).all()
    )

    return [
        g.to_core(
            member_count=member_counts.get(g.group_id, 0),
            team_count=team_counts.get(g.group_id, 0),
        )
        for g in groups
    ]


async def read_member(
    group_id: UUID, user_id: UserID, conn: AsyncSession
) -> UserGroupMember | None:
    result = await conn.execute(
        select(UserGroupMember)
        .where(UserGroupMember.group_id == group_id)
        .where(UserGroupMember.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_group_members(
    group_id: UUID,
    conn: AsyncSession,
    limit: int | None = None,
    offset: int | None = None,
) -> list[UserGroupMember]:
    stmt = (
        select(UserGroupMember)
        .where(UserGroupMember.group_id == group_id)
        .order_by(UserGroupMember.added_at, UserGroupMember.member_id)
    )

    if offset is not None:
        stmt = stmt.offset(offset)

    if limit is not None:
        stmt = stmt.limit(limit)

    result = await conn.execute(stmt)
    return list(result.scalars().all())


async def get_group_team_access(
    group_id: UUID, conn: AsyncSession
) -> list[GroupTeamAccessData]:
    """
    The teams a group has access to, with the team names joined in.
    """
    result = await conn.execute(
        select(UserGroupTeamAccess, Team.name)
        .join(Team, Team.team_id == UserGroupTeamAccess.team_id)
        .where(UserGroupTeamAccess.group_id == group_id)
        .order_by(UserGroupTeamAccess.assigned_at)
    )

    return [access.to_core(team_name=team_name) for access, team_name in result.all()]


async def get_user_groups(user_id: UserID, conn: AsyncSession) -> list[UserGroup]:
    result = await conn.execute(
        select(UserGroup)
        .join(UserGroupMember, UserGroupMember.group_id == UserGroup.group_id)
        .where(UserGroupMember.user_id == user_id)
        .order_by(UserGroup.name)
    )
    return list(result.scalars().all())


async def get_team_groups(team_id: UUID, conn: AsyncSession) -> list[UserGroup]:
    result = await conn.execute(
        select(UserGroup)
        .join(UserGroupTeamAccess, UserGroupTeamAccess.group_id == UserGroup.group_id)
        .where(UserGroupTeamAccess.team_id == team_id)
        .order_by(UserGroup.name)
    )
    return list(result.scalars().all())


async def is_group_admin(group_id: UUID, user_id: UserID, conn: AsyncSession) -> bool:
    member = await read_member(group_id=group_id, user_id=user_id, conn=conn)
    return member is not None and member.is_admin


async def count_members(group_id: UUID, conn: AsyncSession) -> int:
    result = await conn.execute(
        select(func.count())
        .select_from(UserGroupMember)
        .where(UserGroupMember.group_id == group_id)
    )
    return result.scalar_one()


async def count_admins(group_id: UUID, conn: AsyncSession) -> int:
    result = await conn.execute(
        select(func.count())
        .select_from(UserGroupMember)
        .where(UserGroupMember.group_id == group_id)
        .where(UserGroupMember.is_admin.is_(True))
    )
    return result.scalar_one()


async def count_teams(group_id: UUID, conn: AsyncSession) -> int:
    result = await conn.execute(
        select(func.count())
        .select_from(UserGroupTeamAccess)
        .where(UserGroupTeamAccess.group_id == group_id)
    )
    return result.scalar_one()
