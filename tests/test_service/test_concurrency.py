"""
Tests that concurrent mutations on the same group are ordered by the store:
uniqueness violations become domain failures and the admin protections hold.
"""

import asyncio

import pytest

from teamaccess.core.actor import Actor
from teamaccess.core.audit import AuditAction, AuditLogFilter
from teamaccess.core.result import ErrorCode, Failure, Success
from teamaccess.core.roles import Role
from teamaccess.service import audit as audit_service
from teamaccess.service import groups as groups_service


async def in_transaction(session_manager, operation, **kwargs):
    async with session_manager.session() as conn:
        async with conn.begin():
            return await operation(conn=conn, **kwargs)


async def new_group(session_manager, logger, actor, name, admins=()):
    async with session_manager.session() as conn:
        async with conn.begin():
            group = (
                await groups_service.create_group(
                    name=name,
                    role=Role.EDITOR,
                    description=None,
                    actor=actor,
                    conn=conn,
                    log=logger,
                )
            ).value

            for user_id in admins:
                await groups_service.add_member(
                    group_id=group.group_id,
                    user_id=user_id,
                    is_admin=True,
                    actor=actor,
                    conn=conn,
                    log=logger,
                )

            return group.group_id


async def audit_entries(session_manager, logger, group_id, action):
    async with session_manager.session() as conn:
        async with conn.begin():
            return await audit_service.query(
                filters=AuditLogFilter(group_id=group_id, action=action),
                conn=conn,
                log=logger,
            )


def split(results):
    successes = [r for r in results if isinstance(r, Success)]
    failures = [r.error for r in results if isinstance(r, Failure)]
    return successes, failures


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_add_member(session_manager, logger, system_admin, unique):
    GROUP_ID = await new_group(
        session_manager, logger, system_admin, f"race-add-{unique}"
    )

    results = await asyncio.gather(
        *[
            in_transaction(
                session_manager,
                groups_service.add_member,
                group_id=GROUP_ID,
                user_id=f"dup-{unique}",
                is_admin=False,
                actor=system_admin,
                log=logger,
            )
            for _ in range(2)
        ]
    )

    successes, failures = split(results)

    assert len(successes) == 1
    assert failures == [ErrorCode.MEMBER_EXISTS]

    entries = await audit_entries(
        session_manager, logger, GROUP_ID, AuditAction.MEMBER_ADDED
    )

    assert len(entries) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_assign_to_team(
    session_manager, logger, system_admin, unique, team
):
    GROUP_ID = await new_group(
        session_manager, logger, system_admin, f"race-assign-{unique}"
    )

    results = await asyncio.gather(
        *[
            in_transaction(
                session_manager,
                groups_service.assign_to_team,
                group_id=GROUP_ID,
                team_id=team,
                actor=system_admin,
                log=logger,
            )
            for _ in range(2)
        ]
    )

    successes, failures = split(results)

    assert len(successes) == 1
    assert failures == [ErrorCode.ACCESS_EXISTS]

    entries = await audit_entries(
        session_manager, logger, GROUP_ID, AuditAction.TEAM_ACCESS_GRANTED
    )

    assert len(entries) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_create_group(session_manager, logger, system_admin, unique):
    name = f"race-create-{unique}"

    results = await asyncio.gather(
        *[
            in_transaction(
                session_manager,
                groups_service.create_group,
                name=name,
                role=role,
                description=None,
                actor=system_admin,
                log=logger,
            )
            for role in (Role.EDITOR, Role.VIEWER)
        ]
    )

    successes, failures = split(results)

    assert len(successes) == 1
    assert failures == [ErrorCode.NAME_TAKEN]

    entries = await audit_entries(
        session_manager,
        logger,
        successes[0].value.group_id,
        AuditAction.GROUP_CREATED,
    )

    assert len(entries) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_name_taken_by_constraint(
    session_manager, logger, system_admin, unique, monkeypatch
):
    """
    A name claimed between the lookup and the insert is caught by the unique
    constraint, and the caller's transaction stays usable.
    """
    name = f"constraint-{unique}"
    GROUP_ID = await new_group(session_manager, logger, system_admin, name)

    async def lookup_misses(name, conn, log):
        return None

    monkeypatch.setattr(groups_service, "read_by_name", lookup_misses)

    async with session_manager.session() as conn:
        async with conn.begin():
            result = await groups_service.create_group(
                name=name,
                role=Role.VIEWER,
                description=None,
                actor=system_admin,
                conn=conn,
                log=logger,
            )

            assert result.error == ErrorCode.NAME_TAKEN

            groups = await groups_service.get_groups(conn=conn, log=logger, search=name)

            assert [g.group_id for g in groups] == [GROUP_ID]

    entries = await audit_entries(
        session_manager, logger, GROUP_ID, AuditAction.GROUP_CREATED
    )

    assert len(entries) == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_concurrent_admin_removal(session_manager, logger, system_admin, unique):
    first = f"admin-a-{unique}"
    second = f"admin-b-{unique}"
    outsider = Actor(actor_id=f"outsider-{unique}")

    GROUP_ID = await new_group(
        session_manager,
        logger,
        system_admin,
        f"race-remove-{unique}",
        admins=(first, second),
    )

    results = await asyncio.gather(
        *[
            in_transaction(
                session_manager,
                groups_service.remove_member,
                group_id=GROUP_ID,
                user_id=user_id,
                actor=outsider,
                log=logger,
            )
            for user_id in (first, second)
        ]
    )

    successes, failures = split(results)

    assert len(successes) == 1
    assert failures == [ErrorCode.LAST_ADMIN]

    async with session_manager.session() as conn:
        async with conn.begin():
            assert await groups_service.count_admins(group_id=GROUP_ID, conn=conn) == 1

    entries = await audit_entries(
        session_manager, logger, GROUP_ID, AuditAction.MEMBER_REMOVED
    )

    assert len(entries) == 1
