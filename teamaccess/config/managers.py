"""
Core client, including session management.
"""

from sqlalchemy import URL, Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine

# Registers every table on SQLModel.metadata
from teamaccess.database import meta  # noqa: F401

SQLITE_BUSY_TIMEOUT_MS = 30_000


def _sqlite_transaction_hooks(engine: Engine) -> None:
    """
    pysqlite (and aiosqlite, which wraps it) does its own transaction
    management, which breaks SAVEPOINT semantics and never enables foreign
    keys. Take over: emit BEGIN ourselves and switch foreign keys on for each
    new connection.

    SQLite has no row locks, so transactions begin IMMEDIATE: writers are
    serialized at BEGIN (waiting up to the busy timeout) and each one reads
    the state committed by the previous one.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SyncSessionManager:
    """
    A manager for synchronous sessions. Expected usage of this class to interact:

    manager = SyncSessionManager(conn_url)

    with manager.session() as conn:
        team = conn.get(Team, team_id)
    """

    connection_url: URL
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: URL, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)

        if self.engine.dialect.name == "sqlite":
            _sqlite_transaction_hooks(self.engine)

        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn)

    def drop_all(self):
        """
        Run the `SQLModel.metadata.drop_all` deletion method. WARNING: this
        will delete all data in your database; you probably don't want to do this
        unless you are writing a test.
        """
        with self.engine.begin() as conn:
            SQLModel.metadata.drop_all(conn)


class AsyncSessionManager:
    """
    A manager for asynchronous sessions. Every service function takes the
    session as `conn` and never commits on its own; the transaction opened by
    the caller is the unit that makes a mutation and its audit entry durable
    together:

    manager = AsyncSessionManager(conn_url)

    async with manager.session() as conn:
        async with conn.begin():
            result = await groups_service.add_member(..., conn=conn, log=log)
    """

    connection_url: URL
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(self, connection_url: URL, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_async_engine(self.connection_url, echo=echo)

        if self.engine.dialect.name == "sqlite":
            _sqlite_transaction_hooks(self.engine.sync_engine)

        # Rows are read back after commit (e.g. to publish notifications),
        # so do not expire them.
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def drop_all(self):
        """
        Run the `SQLModel.metadata.drop_all` deletion method. WARNING: this
        will delete all data in your database; you probably don't want to do this
        unless you are writing a test.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)

    async def dispose(self):
        await self.engine.dispose()
