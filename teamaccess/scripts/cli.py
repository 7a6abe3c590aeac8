"""
A simple CLI for running a sample server.
"""

import asyncio
import os
import sys

import uvicorn


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    from teamaccess.config.settings import Settings

    settings = Settings()

    uvicorn.run("teamaccess.api.app:app", host=settings.host, port=settings.port)


def setup():
    from teamaccess.config.settings import Settings

    settings = Settings()
    manager = settings.async_manager()

    async def create():
        await manager.create_all()
        await manager.dispose()

    asyncio.run(create())


def main():
    try:
        run = sys.argv[1] == "run"
        create_tables = sys.argv[1] == "setup"
        dev = run and sys.argv[2] == "dev"
        prod = run and sys.argv[2] == "prod"
    except IndexError:
        print(
            "Only supported command is teamaccess run dev, teamaccess run prod, "
            "or teamaccess setup"
        )
        exit(1)

    if dev:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer() as container:
            print(
                f"Container details: username={container.username}, password={container.password}, port={container.get_exposed_port(container.port)}"
            )

            environment = {
                "TEAMACCESS_DATABASE_TYPE": "postgres",
                "TEAMACCESS_DATABASE_USER": container.username,
                "TEAMACCESS_DATABASE_PASSWORD": container.password,
                "TEAMACCESS_DATABASE_PORT": str(
                    container.get_exposed_port(container.port)
                ),
                "TEAMACCESS_DATABASE_HOST": "localhost",
                "TEAMACCESS_DATABASE_DB": container.dbname,
                "TEAMACCESS_DATABASE_ECHO": "False",
                "TEAMACCESS_CREATE_TABLES_ON_STARTUP": "True",
                "TEAMACCESS_TRUST_IDENTITY_HEADERS": "True",
            }

            run_server(**environment)

    if prod:
        run_server()

    if create_tables:
        setup()

        print("Setup complete, tables created")
        exit(0)
