"""
Tests the team service layer.
"""

import pytest

from teamaccess.core.audit import AuditAction, AuditLogFilter
from teamaccess.core.result import ErrorCode, Success
from teamaccess.core.roles import Role
from teamaccess.core.uuid import uuid7
from teamaccess.service import audit as audit_service
from teamaccess.service import groups as groups_service
from teamaccess.service import teams as teams_service


@pytest.mark.asyncio(loop_scope="session")
async def test_direct_members(session_manager, logger, unique, team):
    user = f"frank-{unique}"

    async with session_manager.session() as conn:
        async with conn.begin():
            result = await teams_service.add_member(
                team_id=team, user_id=user, role=Role.VIEWER, conn=conn, log=logger
            )

            assert isinstance(result, Success)
            assert result.value.role == Role.VIEWER

            result = await teams_service.add_member(
                team_id=team, user_id=user, role=Role.OWNER, conn=conn, log=logger
            )

            assert result.error == ErrorCode.TEAM_MEMBER_EXISTS

            result = await teams_service.add_member(
                team_id=uuid7(), user_id=user, role=Role.OWNER, conn=conn, log=logger
            )

            assert result.error == ErrorCode.TEAM_NOT_FOUND

    async with session_manager.session() as conn:
        async with conn.begin():
            result = await teams_service.update_member_role(
                team_id=team, user_id=user, role=Role.EDITOR, conn=conn, log=logger
            )

            assert result.value.role == Role.EDITOR

            member = await teams_service.read_member(
                team_id=team, user_id=user, conn=conn
            )

            assert member.role == Role.EDITOR

            members = await teams_service.get_team_members(team_id=team, conn=conn)

            assert [m.user_id for m in members] == [user]

    async with session_manager.session() as conn:
        async with conn.begin():
            result = await teams_service.remove_member(
                team_id=team, user_id=user, conn=conn, log=logger
            )

            assert isinstance(result, Success)

            result = await teams_service.remove_member(
                team_id=team, user_id=user, conn=conn, log=logger
            )

            assert result.error == ErrorCode.TEAM_MEMBER_NOT_FOUND

            result = await teams_service.update_member_role(
                team_id=team, user_id=user, role=Role.OWNER, conn=conn, log=logger
            )

            assert result.error == ErrorCode.TEAM_MEMBER_NOT_FOUND


@pytest.mark.asyncio(loop_scope="session")
async def test_create_and_delete_team(session_manager, logger, system_admin, unique):
    async with session_manager.session() as conn:
        async with conn.begin():
            team = await teams_service.create(
                name=f"short-lived-{unique}", conn=conn, log=logger
            )
            TEAM_ID = team.team_id

            await teams_service.add_member(
                team_id=TEAM_ID,
                user_id=f"gina-{unique}",
                role=Role.OWNER,
                conn=conn,
                log=logger,
            )

            group = (
                await groups_service.create_group(
                    name=f"granted-{unique}",
                    role=Role.EDITOR,
                    description=None,
                    actor=system_admin,
                    conn=conn,
                    log=logger,
                )
            ).value
            GROUP_ID = group.group_id

            await groups_service.assign_to_team(
                group_id=GROUP_ID,
                team_id=TEAM_ID,
                actor=system_admin,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            teams = await teams_service.get_team_list(conn=conn)

            assert TEAM_ID in [t.team_id for t in teams]

            result = await teams_service.delete_team(
                team_id=TEAM_ID, actor=system_admin, conn=conn, log=logger
            )

            assert isinstance(result, Success)

    async with session_manager.session() as conn:
        async with conn.begin():
            assert await teams_service.read_by_id(team_id=TEAM_ID, conn=conn) is None
            assert await teams_service.get_team_members(team_id=TEAM_ID, conn=conn) == []
            assert await groups_service.count_teams(group_id=GROUP_ID, conn=conn) == 0

            result = await teams_service.delete_team(
                team_id=TEAM_ID, actor=system_admin, conn=conn, log=logger
            )

            assert result.error == ErrorCode.TEAM_NOT_FOUND

            # The grant removed with the team is audited on its group
            entries = await audit_service.query(
                filters=AuditLogFilter(group_id=GROUP_ID), conn=conn, log=logger
            )

            assert [e.action for e in entries] == [
                AuditAction.TEAM_ACCESS_REVOKED,
                AuditAction.TEAM_ACCESS_GRANTED,
                AuditAction.GROUP_CREATED,
            ]
            assert entries[0].target_id == str(TEAM_ID)
            assert entries[0].performed_by == system_admin.actor_id
            assert entries[0].details["role"] == "EDITOR"
