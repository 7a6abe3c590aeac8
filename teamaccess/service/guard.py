"""
Authorization guards, evaluated by callers before running a protected
operation. Guards hold no state: each check reads the current memberships, so
a change made earlier in the same session is honoured on the next call.

Denials are returned as a `Deny` value rather than raised, and are kept apart
from the domain failures of `teamaccess.core.result`.
"""

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.core.actor import Actor
from teamaccess.core.roles import Role
from teamaccess.core.uuid import UUID

from . import groups as groups_service
from . import permissions as permissions_service


class DenyReason(str, enum.Enum):
    NO_TEAM_ACCESS = "NO_TEAM_ACCESS"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    NOT_GROUP_ADMIN = "NOT_GROUP_ADMIN"
    NOT_SYSTEM_ADMIN = "NOT_SYSTEM_ADMIN"


@dataclass(frozen=True)
class Allow:
    # The effective role that satisfied a team-scoped check.
    role: Role | None = None

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason

    @property
    def allowed(self) -> bool:
        return False


Decision = Allow | Deny


async def check_team_role(
    actor: Actor,
    team_id: UUID,
    required_roles: Iterable[Role],
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Decision:
    """
    Allow if the actor's effective role on the team is one of
    `required_roles`.
    """
    required_roles = {Role(x) for x in required_roles}

    log = log.bind(
        actor_id=actor.actor_id,
        team_id=team_id,
        required_roles=sorted(x.value for x in required_roles),
    )

    role = await permissions_service.resolve_effective_role(
        user_id=actor.actor_id, team_id=team_id, conn=conn, log=log
    )

    if role is None:
        await log.ainfo("guard.team.denied", reason=DenyReason.NO_TEAM_ACCESS)
        return Deny(DenyReason.NO_TEAM_ACCESS)

    if role not in required_roles:
        await log.ainfo(
            "guard.team.denied", reason=DenyReason.INSUFFICIENT_ROLE, role=role
        )
        return Deny(DenyReason.INSUFFICIENT_ROLE)

    await log.adebug("guard.team.allowed", role=role)
    return Allow(role=role)


async def check_group_admin(
    actor: Actor,
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Decision:
    """
    Allow system administrators, and admins of the group.
    """
    log = log.bind(actor_id=actor.actor_id, group_id=group_id)

    if actor.is_system_admin:
        await log.adebug("guard.group_admin.allowed", system_admin=True)
        return Allow()

    if await groups_service.is_group_admin(
        group_id=group_id, user_id=actor.actor_id, conn=conn
    ):
        await log.adebug("guard.group_admin.allowed", system_admin=False)
        return Allow()

    await log.ainfo("guard.group_admin.denied")
    return Deny(DenyReason.NOT_GROUP_ADMIN)


def check_system_admin(actor: Actor) -> Decision:
    if actor.is_system_admin:
        return Allow()

    return Deny(DenyReason.NOT_SYSTEM_ADMIN)
