"""
Tests the role hierarchy and result types.
"""

import pytest

from teamaccess.core.result import ErrorCode, ErrorKind, Failure, Success
from teamaccess.core.roles import Role, highest, meets_minimum, rank


def test_rank_order():
    assert rank(Role.OWNER) > rank(Role.EDITOR) > rank(Role.VIEWER)


def test_highest():
    assert highest([Role.VIEWER]) == Role.VIEWER
    assert highest([Role.VIEWER, Role.EDITOR]) == Role.EDITOR
    assert highest([Role.EDITOR, Role.OWNER, Role.VIEWER]) == Role.OWNER
    assert highest(["VIEWER", "EDITOR"]) == Role.EDITOR

    with pytest.raises(ValueError):
        highest([])


def test_meets_minimum():
    assert meets_minimum(Role.OWNER, Role.VIEWER)
    assert meets_minimum(Role.EDITOR, Role.EDITOR)
    assert not meets_minimum(Role.VIEWER, Role.EDITOR)
    assert not meets_minimum(Role.EDITOR, Role.OWNER)


def test_error_kinds():
    # Every code maps to exactly one kind
    for code in ErrorCode:
        assert isinstance(code.kind, ErrorKind)

    assert ErrorCode.NAME_TAKEN.value == "USER_GROUP_NAME_TAKEN"
    assert ErrorCode.NAME_TAKEN.kind == ErrorKind.ALREADY_EXISTS
    assert ErrorCode.LAST_ADMIN.kind == ErrorKind.FORBIDDEN
    assert ErrorCode.ACCESS_NOT_FOUND.kind == ErrorKind.NOT_FOUND


def test_result():
    assert Success(1).ok
    assert Success(1).value == 1

    failure = Failure(ErrorCode.MEMBER_EXISTS)
    assert not failure.ok
    assert failure.kind == ErrorKind.ALREADY_EXISTS
