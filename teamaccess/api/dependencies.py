"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from teamaccess.config.managers import AsyncSessionManager
from teamaccess.config.settings import Settings
from teamaccess.core.actor import Actor
from teamaccess.service.notifications import Notifier, PubSub


@lru_cache
def SETTINGS() -> Settings:
    return Settings()


@lru_cache
def DATABASE_MANAGER() -> AsyncSessionManager:
    return SETTINGS().async_manager()


@lru_cache
def PUBSUB() -> PubSub:
    return PubSub()


async def get_async_session():
    async with DATABASE_MANAGER().session() as session:
        async with session.begin():
            yield session


def logger():
    return get_logger()


def get_notifier() -> Notifier:
    return PUBSUB()


def get_actor(request: Request) -> Actor:
    """
    The authenticated caller. Authentication happens upstream of this
    service: whatever authenticates the request must leave an `Actor` on
    `request.state.actor` (see `teamaccess.api.identity`).
    """
    actor = getattr(request.state, "actor", None)

    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authenticated actor on this request",
        )

    return actor


SettingsDependency = Annotated[Settings, Depends(SETTINGS)]
DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
NotifierDependency = Annotated[Notifier, Depends(get_notifier)]
ActorDependency = Annotated[Actor, Depends(get_actor)]
