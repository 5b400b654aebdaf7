"""Users and the groups that grant them permissions."""

from __future__ import annotations

import re
from typing import Any

from ..errors import CastError
from ..schema.constants import PERMISSIONS
from ..schema.util import cast_lowercase_string
from .util import BASE_PROPERTIES, active_uuid

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def cast_email(value: Any) -> str:
    """Accept strings shaped like an email address."""
    if not isinstance(value, str) or not _EMAIL.match(value.strip()):
        raise CastError(f"Email ({value}) does not look like a valid email address", value=value)
    return value.strip()


_ADMIN_READ = {"default": int(PERMISSIONS.READ), "admin": int(PERMISSIONS.ALL)}

DEFINITIONS: dict[str, dict[str, Any]] = {
    "User": {
        "permissions": dict(_ADMIN_READ),
        "properties": [
            {**BASE_PROPERTIES["@rid"]},
            {**BASE_PROPERTIES["@class"]},
            {"name": "name", "mandatory": True, "nullable": False, "description": "The username"},
            {
                "name": "email",
                "description": "The email address to contact this user at",
                "cast": cast_email,
            },
            {
                "name": "groups",
                "type": "linkset",
                "linkedClass": "UserGroup",
                "description": "Groups this user belongs to. Defines permissions for the user",
            },
            {**BASE_PROPERTIES["uuid"]},
            {**BASE_PROPERTIES["createdAt"]},
            {**BASE_PROPERTIES["createdBy"], "mandatory": False},
            {**BASE_PROPERTIES["deletedAt"]},
            {**BASE_PROPERTIES["deletedBy"]},
            {**BASE_PROPERTIES["history"]},
            {**BASE_PROPERTIES["groupRestrictions"]},
            {
                "name": "signedLicenseAt",
                "type": "long",
                "default": None,
                "description": "This user has read and acknowledged the terms of use as of this date",
            },
            {
                "name": "lastLoginAt",
                "type": "long",
                "description": "The timestamp at which the user last logged in",
                "examples": [1547245339649],
            },
            {
                "name": "loginCount",
                "type": "integer",
                "description": "The number of times this user has logged in",
                "examples": [10],
            },
        ],
        "indices": [
            {
                "name": "ActiveUserName",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": False},
                "properties": ["name", "deletedAt"],
                "class": "User",
            },
            active_uuid("User"),
            {
                "name": "ActiveUserEmail",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": True},
                "properties": ["email", "deletedAt"],
                "class": "User",
            },
        ],
    },
    "UserGroup": {
        "permissions": dict(_ADMIN_READ),
        "description": "The role or group which users can belong to. Defines permissions",
        "properties": [
            {**BASE_PROPERTIES["@rid"]},
            {**BASE_PROPERTIES["@class"]},
            {"name": "name", "mandatory": True, "nullable": False, "cast": cast_lowercase_string},
            {**BASE_PROPERTIES["uuid"]},
            {**BASE_PROPERTIES["createdAt"]},
            {**BASE_PROPERTIES["createdBy"], "mandatory": False},
            {**BASE_PROPERTIES["deletedAt"]},
            {**BASE_PROPERTIES["deletedBy"]},
            {**BASE_PROPERTIES["history"]},
            {"name": "permissions", "type": "embedded", "linkedClass": "Permissions"},
            {"name": "description"},
        ],
        "indices": [
            {
                "name": "ActiveUserGroupName",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": False},
                "properties": ["name", "deletedAt"],
                "class": "UserGroup",
            },
            active_uuid("UserGroup"),
        ],
    },
}
