"""
Read access to the user group audit log.
"""

from datetime import datetime

from fastapi import APIRouter, Query

from teamaccess.api.dependencies import (
    ActorDependency,
    DatabaseDependency,
    LoggerDependency,
)
from teamaccess.api.errors import enforce
from teamaccess.core.audit import AuditAction, AuditLogData, AuditLogFilter
from teamaccess.core.uuid import UUID, UserID
from teamaccess.service import audit as audit_service
from teamaccess.service import guard

audit_app = APIRouter(tags=["Audit Log"])


@audit_app.get(
    "",
    summary="Query the audit log",
    description=(
        "Entries matching all given filters, newest first. The date range is "
        "inclusive. Requires system administrator privileges."
    ),
    responses={
        200: {"description": "Matching audit entries."},
        403: {"description": "Not a system administrator."},
    },
)
async def query_audit_log(
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    group_id: UUID | None = None,
    action: AuditAction | None = None,
    performed_by: UserID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
) -> list[AuditLogData]:
    log = log.bind(actor_id=actor.actor_id)

    await enforce(guard.check_system_admin(actor), log)

    entries = await audit_service.query(
        filters=AuditLogFilter(
            group_id=group_id,
            action=action,
            performed_by=performed_by,
            start_date=start_date,
            end_date=end_date,
        ),
        conn=conn,
        log=log,
        limit=limit,
        offset=offset,
    )

    return [e.to_core() for e in entries]


@audit_app.get(
    "/groups/{group_id}",
    summary="Audit history of a group",
    description=(
        "Entries for one group, newest first. Requires group administrator or "
        "system administrator privileges."
    ),
    responses={
        200: {"description": "The group's audit entries."},
        403: {"description": "Not an administrator of this group."},
    },
)
async def group_audit_log(
    group_id: UUID,
    actor: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    action: AuditAction | None = None,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
) -> list[AuditLogData]:
    log = log.bind(group_id=group_id, actor_id=actor.actor_id)

    await enforce(
        await guard.check_group_admin(actor=actor, group_id=group_id, conn=conn, log=log),
        log,
    )

    entries = await audit_service.query(
        filters=AuditLogFilter(group_id=group_id, action=action),
        conn=conn,
        log=log,
        limit=limit,
        offset=offset,
    )

    return [e.to_core() for e in entries]
