"""
Identity for deployments behind an authenticating reverse proxy.

The proxy authenticates the user and forwards their identifier (and whether
they are a system administrator) in headers. Only enable this when the
service is unreachable except through such a proxy, as the headers are
trusted as given.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from teamaccess.core.actor import Actor

ACTOR_ID_HEADER = "X-Actor-Id"
SYSTEM_ADMIN_HEADER = "X-Actor-System-Admin"


class TrustedHeaderIdentityMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        actor_id = request.headers.get(ACTOR_ID_HEADER)

        if actor_id:
            request.state.actor = Actor(
                actor_id=actor_id,
                is_system_admin=request.headers.get(SYSTEM_ADMIN_HEADER, "").lower()
                in ("1", "true", "yes"),
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("User-Agent"),
            )

        return await call_next(request)
