"""
The team access role hierarchy.
"""

import enum
from collections.abc import Iterable


class Role(str, enum.Enum):
    OWNER = "OWNER"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


ROLE_RANK: dict[Role, int] = {
    Role.OWNER: 3,
    Role.EDITOR: 2,
    Role.VIEWER: 1,
}


def rank(role: Role) -> int:
    """
    Numerical rank of a role; higher means more authority.
    """
    return ROLE_RANK[Role(role)]


def highest(roles: Iterable[Role]) -> Role:
    """
    Return the role with the largest rank.

    Raises
    ------
    ValueError
        If no roles are given. Callers must handle the "no access" case
        before asking for the highest role.
    """
    roles = [Role(x) for x in roles]

    if not roles:
        raise ValueError("Cannot take the highest of an empty set of roles")

    return max(roles, key=rank)


def meets_minimum(role: Role, minimum: Role) -> bool:
    return rank(role) >= rank(minimum)
