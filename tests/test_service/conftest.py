"""
Configuration variables and fixtures for the service layer tests.
"""

import pytest_asyncio
import structlog

from teamaccess.config.settings import Settings
from teamaccess.core.actor import Actor
from teamaccess.core.uuid import uuid7
from teamaccess.service import teams as teams_service


@pytest_asyncio.fixture(scope="session")
def session_manager(server_settings: Settings, database):
    yield server_settings.async_manager()


@pytest_asyncio.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest_asyncio.fixture(scope="session")
def system_admin():
    yield Actor(
        actor_id="sysadmin",
        is_system_admin=True,
        ip_address="127.0.0.1",
        user_agent="pytest",
    )


@pytest_asyncio.fixture
def unique():
    """
    A fresh suffix for names, as the database lives for the whole session.
    """
    yield uuid7().hex


@pytest_asyncio.fixture
async def team(session_manager, logger, system_admin, unique):
    async with session_manager.session() as conn:
        async with conn.begin():
            team = await teams_service.create(
                name=f"team-{unique}", conn=conn, log=logger
            )

            TEAM_ID = team.team_id

    yield TEAM_ID

    async with session_manager.session() as conn:
        async with conn.begin():
            await teams_service.delete_team(
                team_id=TEAM_ID, actor=system_admin, conn=conn, log=logger
            )
