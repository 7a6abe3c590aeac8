"""
Outcomes of mutating operations.

Mutations never raise for predictable domain failures (missing rows,
uniqueness violations, protection rules). They return either a `Success`
carrying the written value, or a `Failure` carrying exactly one `ErrorCode`.
Only infrastructure failures (the database going away) are raised.
"""

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    FORBIDDEN = "FORBIDDEN"
    ACCESS_DENIED = "ACCESS_DENIED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class ErrorCode(str, enum.Enum):
    NAME_TAKEN = "USER_GROUP_NAME_TAKEN"
    NOT_FOUND = "USER_GROUP_NOT_FOUND"
    MEMBER_EXISTS = "USER_GROUP_MEMBER_EXISTS"
    MEMBER_NOT_FOUND = "USER_GROUP_MEMBER_NOT_FOUND"
    CANNOT_REMOVE_SELF = "USER_GROUP_CANNOT_REMOVE_SELF"
    LAST_ADMIN = "USER_GROUP_LAST_ADMIN"
    ACCESS_EXISTS = "USER_GROUP_TEAM_ACCESS_EXISTS"
    ACCESS_NOT_FOUND = "USER_GROUP_TEAM_ACCESS_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    TEAM_MEMBER_EXISTS = "TEAM_MEMBER_EXISTS"
    TEAM_MEMBER_NOT_FOUND = "TEAM_MEMBER_NOT_FOUND"

    @property
    def kind(self) -> ErrorKind:
        return ERROR_KINDS[self]


ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.NAME_TAKEN: ErrorKind.ALREADY_EXISTS,
    ErrorCode.NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.MEMBER_EXISTS: ErrorKind.ALREADY_EXISTS,
    ErrorCode.MEMBER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.CANNOT_REMOVE_SELF: ErrorKind.FORBIDDEN,
    ErrorCode.LAST_ADMIN: ErrorKind.FORBIDDEN,
    ErrorCode.ACCESS_EXISTS: ErrorKind.ALREADY_EXISTS,
    ErrorCode.ACCESS_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TEAM_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TEAM_MEMBER_EXISTS: ErrorKind.ALREADY_EXISTS,
    ErrorCode.TEAM_MEMBER_NOT_FOUND: ErrorKind.NOT_FOUND,
}


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: ErrorCode

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Success[T] | Failure
