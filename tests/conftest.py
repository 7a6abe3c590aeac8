"""
Core configuration

Tests run against a temporary SQLite database by default. Set
TEAMACCESS_TEST_POSTGRES=1 to run them against a Postgres container instead.
"""

import os

import pytest_asyncio

from teamaccess.config.settings import Settings


@pytest_asyncio.fixture(scope="session")
def database_container(tmp_path_factory):
    if not os.environ.get("TEAMACCESS_TEST_POSTGRES"):
        yield {
            "database_type": "sqlite",
            "database_db": str(tmp_path_factory.mktemp("db") / "teamaccess.db"),
            "database_echo": False,
        }
        return

    from testcontainers.postgres import PostgresContainer

    with PostgresContainer() as container:
        yield {
            "database_type": "postgres",
            "database_user": container.username,
            "database_password": container.password,
            "database_port": container.get_exposed_port(container.port),
            "database_host": "localhost",
            "database_db": container.dbname,
            "database_echo": True,
        }


@pytest_asyncio.fixture(scope="session")
def server_settings(database_container):
    yield Settings(**database_container)


@pytest_asyncio.fixture(scope="session")
def database(server_settings: Settings):
    server_settings.sync_manager().create_all()
