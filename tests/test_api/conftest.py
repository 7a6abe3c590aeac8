"""
Fixtures for the HTTP API tests. Requests go straight to the ASGI app, which
reads the caller's identity from the trusted proxy headers.
"""

import httpx
import pytest_asyncio

from teamaccess.api import dependencies
from teamaccess.api.app import app as api_app
from teamaccess.api.identity import (
    ACTOR_ID_HEADER,
    SYSTEM_ADMIN_HEADER,
    TrustedHeaderIdentityMiddleware,
)
from teamaccess.config.settings import Settings
from teamaccess.core.uuid import uuid7
from teamaccess.service.notifications import PubSub


@pytest_asyncio.fixture(scope="session")
def session_manager(server_settings: Settings, database):
    yield server_settings.async_manager()


@pytest_asyncio.fixture(scope="session")
def pubsub():
    yield PubSub()


@pytest_asyncio.fixture(scope="session")
def app(session_manager, pubsub):
    async def get_async_session():
        async with session_manager.session() as session:
            async with session.begin():
                yield session

    api_app.dependency_overrides[dependencies.get_async_session] = get_async_session
    api_app.dependency_overrides[dependencies.get_notifier] = lambda: pubsub

    if not any(
        m.cls is TrustedHeaderIdentityMiddleware for m in api_app.user_middleware
    ):
        api_app.add_middleware(TrustedHeaderIdentityMiddleware)

    yield api_app

    api_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="session")
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


def _headers(user_id: str, system_admin: bool = False) -> dict[str, str]:
    headers = {ACTOR_ID_HEADER: user_id}

    if system_admin:
        headers[SYSTEM_ADMIN_HEADER] = "true"

    return headers


@pytest_asyncio.fixture(scope="session")
def as_user():
    yield _headers


@pytest_asyncio.fixture(scope="session")
def admin_headers():
    yield _headers("sysadmin", system_admin=True)


@pytest_asyncio.fixture
def unique():
    yield uuid7().hex
