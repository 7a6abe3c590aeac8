"""
Tests the audit log queries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from teamaccess.core.actor import Actor
from teamaccess.core.audit import AuditAction, AuditLogFilter
from teamaccess.core.roles import Role
from teamaccess.service import audit as audit_service
from teamaccess.service import groups as groups_service


@pytest.mark.asyncio(loop_scope="session")
async def test_audit_filters(session_manager, logger, system_admin, unique):
    start = datetime.now(tz=timezone.utc) - timedelta(seconds=1)
    helper = Actor(actor_id=f"helper-{unique}", ip_address="10.0.0.2")

    async with session_manager.session() as conn:
        async with conn.begin():
            group = (
                await groups_service.create_group(
                    name=f"audited-{unique}",
                    role=Role.VIEWER,
                    description=None,
                    actor=system_admin,
                    conn=conn,
                    log=logger,
                )
            ).value
            GROUP_ID = group.group_id

            await groups_service.add_member(
                group_id=GROUP_ID,
                user_id=f"henry-{unique}",
                is_admin=False,
                actor=helper,
                conn=conn,
                log=logger,
            )
            await groups_service.add_member(
                group_id=GROUP_ID,
                user_id=f"iris-{unique}",
                is_admin=False,
                actor=helper,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            entries = await audit_service.query(
                filters=AuditLogFilter(group_id=GROUP_ID), conn=conn, log=logger
            )

            assert [e.action for e in entries] == [
                AuditAction.MEMBER_ADDED,
                AuditAction.MEMBER_ADDED,
                AuditAction.GROUP_CREATED,
            ]
            assert entries[0].details["user_id"] == f"iris-{unique}"

            entries = await audit_service.query(
                filters=AuditLogFilter(performed_by=helper.actor_id),
                conn=conn,
                log=logger,
            )

            assert len(entries) == 2
            assert all(e.ip_address == "10.0.0.2" for e in entries)

            entries = await audit_service.query(
                filters=AuditLogFilter(
                    group_id=GROUP_ID, action=AuditAction.GROUP_CREATED
                ),
                conn=conn,
                log=logger,
            )

            assert len(entries) == 1
            assert entries[0].performed_by == system_admin.actor_id

            entries = await audit_service.query(
                filters=AuditLogFilter(group_id=GROUP_ID),
                conn=conn,
                log=logger,
                limit=1,
                offset=1,
            )

            assert len(entries) == 1
            assert entries[0].details["user_id"] == f"henry-{unique}"

            # Date range
            entries = await audit_service.query(
                filters=AuditLogFilter(
                    group_id=GROUP_ID,
                    start_date=start,
                    end_date=datetime.now(tz=timezone.utc) + timedelta(seconds=1),
                ),
                conn=conn,
                log=logger,
            )

            assert len(entries) == 3

            entries = await audit_service.query(
                filters=AuditLogFilter(
                    group_id=GROUP_ID, end_date=start - timedelta(days=1)
                ),
                conn=conn,
                log=logger,
            )

            assert entries == []


@pytest.mark.asyncio(loop_scope="session")
async def test_audit_rolled_back(session_manager, logger, system_admin, unique):
    """
    An audit entry only exists if the change it describes was committed.
    """
    name = f"rolled-back-{unique}"

    class Abort(Exception):
        pass

    with pytest.raises(Abort):
        async with session_manager.session() as conn:
            async with conn.begin():
                group = (
                    await groups_service.create_group(
                        name=name,
                        role=Role.VIEWER,
                        description=None,
                        actor=system_admin,
                        conn=conn,
                        log=logger,
                    )
                ).value
                GROUP_ID = group.group_id

                raise Abort

    async with session_manager.session() as conn:
        async with conn.begin():
            assert (
                await groups_service.read_by_name(name=name, conn=conn, log=logger)
                is None
            )

            entries = await audit_service.query(
                filters=AuditLogFilter(group_id=GROUP_ID), conn=conn, log=logger
            )

            assert entries == []
