"""
Constants shared by the schema compiler.

Permission bits:
    CREATE  0b1000
    READ    0b0100
    UPDATE  0b0010
    DELETE  0b0001

    >>> int(PERMISSIONS.READ | PERMISSIONS.CREATE)
    12
    >>> bool(PERMISSIONS.READ & PERMISSIONS.ALL)
    True
"""

from __future__ import annotations

from enum import Enum, IntFlag
from types import MappingProxyType


class PERMISSIONS(IntFlag):
    """Permission bits granted to a role on a class."""

    NONE = 0b0000
    DELETE = 0b0001
    UPDATE = 0b0010
    READ = 0b0100
    CREATE = 0b1000
    ALL = 0b1111


class Operation(Enum):
    """Operations a class may expose to the route layer."""

    QUERY = "QUERY"  # list/search
    GET = "GET"  # fetch by record id
    POST = "POST"
    PATCH = "PATCH"
    DELETE = "DELETE"


EXPOSE_ALL = MappingProxyType({op.value: True for op in Operation})
EXPOSE_NONE = MappingProxyType({op.value: False for op in Operation})
EXPOSE_EDGE = MappingProxyType(
    {"QUERY": True, "GET": True, "POST": True, "PATCH": False, "DELETE": True}
)
EXPOSE_READ = MappingProxyType(
    {"QUERY": True, "GET": True, "POST": False, "PATCH": False, "DELETE": False}
)

# Largest cluster id accepted in a record identifier
MAX_CLUSTER_ID = 32767

PERMISSIONS_CLASS = "Permissions"

# Classes that are always created first (see SchemaRegistry.split_class_levels)
ROOT_CLASSES = ("V", "E", "User", "UserGroup")

DEFAULT_ROLE = "default"
READONLY_ROLE = "readonly"

# Default separator chars for full text hash indices
INDEX_SEP_CHARS = " \r\n\t:;,.|+*/\\=!?[]()"

REVIEW_STATUS = ("pending", "not required", "passed", "failed", "initial")
