"""
FastAPI app
"""

from importlib.metadata import version

from fastapi import FastAPI

from .audit import audit_app
from .dependencies import DATABASE_MANAGER, SETTINGS, logger
from .errors import add_exception_handlers
from .groups import group_app
from .identity import TrustedHeaderIdentityMiddleware
from .members import member_app
from .teams import team_app

settings = SETTINGS()


async def lifespan(app: FastAPI):
    app.settings = settings

    if settings.create_tables_on_startup:
        await DATABASE_MANAGER().create_all()
        await logger().ainfo(
            "api.startup.tables_created", database_type=settings.database_type
        )

    yield

    await DATABASE_MANAGER().dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Team Access API",
    summary=(
        "API endpoints for managing user groups, their access to teams, and "
        "resolving the effective role of a user on a team."
    ),
    version=version("teamaccess"),
)

app = add_exception_handlers(app)

if settings.trust_identity_headers:
    app.add_middleware(TrustedHeaderIdentityMiddleware)

app.include_router(group_app, prefix="/groups")
app.include_router(member_app, prefix="/groups")
app.include_router(team_app, prefix="/teams")
app.include_router(audit_app, prefix="/audit")
