"""
Audit log ORM. Rows in this table are only ever inserted.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from teamaccess.core.audit import AuditAction, AuditLogData
from teamaccess.core.uuid import UUID, UserID, uuid7


class UserGroupAuditLog(SQLModel, table=True):
    __tablename__ = "user_group_audit_log"

    entry_id: UUID = Field(primary_key=True, default_factory=uuid7)

    # Not a foreign key: entries outlive the group they describe
    # (e.g. GROUP_DELETED).
    group_id: UUID | None = Field(default=None, index=True)
    action: AuditAction = Field(index=True)
    target_type: str
    target_id: str | None = None
    details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    performed_by: UserID = Field(index=True)
    ip_address: str | None = None
    user_agent: str | None = None
    performed_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), index=True)
    )

    def to_core(self) -> AuditLogData:
        return AuditLogData(
            entry_id=self.entry_id,
            group_id=self.group_id,
            action=self.action,
            target_type=self.target_type,
            target_id=self.target_id,
            details=self.details,
            performed_by=self.performed_by,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            performed_at=self.performed_at,
        )
