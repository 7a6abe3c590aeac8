"""
Service layer for the user group audit log.

The log is append-only: there is no update or delete here. Entries are
written inside the caller's
transaction, so an entry exists if and only if the mutation it describes was
committed.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from teamaccess.core.actor import Actor
from teamaccess.core.audit import AuditAction, AuditLogFilter
from teamaccess.core.uuid import UUID
from teamaccess.database.audit import UserGroupAuditLog


async def append(
    group_id: UUID | None,
    action: AuditAction,
    target_type: str,
    target_id: UUID | str | None,
    details: dict[str, Any] | None,
    actor: Actor,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> UserGroupAuditLog:
    """
    Append an entry to the audit log.

    Parameters
    ----------
    group_id: UUID | None
        The group the action concerns; None for system-wide actions.
    action: AuditAction
        What happened.
    target_type: str
        The kind of entity acted upon (`group`, `member`, `team_access`).
    target_id: UUID | str | None
        The identifier of the entity acted upon.
    details: dict[str, Any] | None
        Free-form, JSON-serializable description of the change.
    actor: Actor
        Who did it, and from where.
    conn: AsyncSession
        The database session. The entry becomes durable when the caller's
        transaction commits.
    log: FilteringBoundLogger
        Logger instance.
    """
    entry = UserGroupAuditLog(
        group_id=group_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=details,
        performed_by=actor.actor_id,
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
        performed_at=datetime.now(tz=timezone.utc),
    )

    conn.add(entry)
    await conn.flush()

    await log.adebug(
        "audit.appended",
        entry_id=entry.entry_id,
        action=action,
        target_type=target_type,
        performed_by=actor.actor_id,
    )

    return entry


async def query(
    filters: AuditLogFilter,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    limit: int | None = None,
    offset: int | None = None,
) -> list[UserGroupAuditLog]:
    """
    Read audit log entries matching all given filters, newest first.
    """
    log = log.bind(**filters.model_dump(exclude_none=True), limit=limit, offset=offset)

    stmt = select(UserGroupAuditLog)

    if filters.group_id is not None:
        stmt = stmt.where(UserGroupAuditLog.group_id == filters.group_id)

    if filters.action is not None:
        stmt = stmt.where(UserGroupAuditLog.action == filters.action)

    if filters.performed_by is not None:
        stmt = stmt.where(UserGroupAuditLog.performed_by == filters.performed_by)

    if filters.start_date is not None:
        stmt = stmt.where(UserGroupAuditLog.performed_at >= filters.start_date)

    if filters.end_date is not None:
        stmt = stmt.where(UserGroupAuditLog.performed_at <= filters.end_date)

    # entry_id is a uuid7, so it breaks ties between entries written in the
    # same instant in insertion order.
    stmt = stmt.order_by(
        UserGroupAuditLog.performed_at.desc(), UserGroupAuditLog.entry_id.desc()
    )

    if offset is not None:
        stmt = stmt.offset(offset)

    if limit is not None:
        stmt = stmt.limit(limit)

    result = await conn.execute(stmt)
    entries = result.scalars().all()

    await log.adebug("audit.queried", number_of_entries=len(entries))

    return list(entries)
