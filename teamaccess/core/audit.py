"""
Core audit log data models.
"""

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from .uuid import UUID, UserID


class AuditAction(str, enum.Enum):
    GROUP_CREATED = "GROUP_CREATED"
    GROUP_UPDATED = "GROUP_UPDATED"
    GROUP_DELETED = "GROUP_DELETED"
    MEMBER_ADDED = "MEMBER_ADDED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    MEMBER_ADMIN_GRANTED = "MEMBER_ADMIN_GRANTED"
    MEMBER_ADMIN_REVOKED = "MEMBER_ADMIN_REVOKED"
    TEAM_ACCESS_GRANTED = "TEAM_ACCESS_GRANTED"
    TEAM_ACCESS_REVOKED = "TEAM_ACCESS_REVOKED"
    INVITATION_SENT = "INVITATION_SENT"
    INVITATION_ACCEPTED = "INVITATION_ACCEPTED"
    INVITATION_EXPIRED = "INVITATION_EXPIRED"


class AuditLogData(BaseModel):
    entry_id: UUID
    # None for system-wide actions
    group_id: UUID | None
    action: AuditAction
    target_type: str
    target_id: str | None
    details: dict[str, Any] | None
    performed_by: UserID
    ip_address: str | None
    user_agent: str | None
    performed_at: datetime


class AuditLogFilter(BaseModel):
    """
    Filters for audit log queries. All given filters must match; the date
    range is inclusive at both ends.
    """

    group_id: UUID | None = None
    action: AuditAction | None = None
    performed_by: UserID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
