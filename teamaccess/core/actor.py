"""
The identity of the caller, as handed to us by upstream authentication.
"""

from pydantic import BaseModel

from .uuid import UserID


class Actor(BaseModel):
    actor_id: UserID
    # Decided outside of this service; we only consult it for the
    # self-removal and last-admin protections and the admin guards.
    is_system_admin: bool = False
    ip_address: str | None = None
    user_agent: str | None = None
