"""
Identifier types. uuid7 is used for every row we create so that primary keys
sort by creation time; user IDs are opaque strings handed to us by the
identity provider.
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

UserID = str

__ALL__ = ["UUID", "uuid7", "UserID"]
