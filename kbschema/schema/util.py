"""
Casting and formatting helpers for property values.

Every cast function takes a single raw value and returns the canonical value
to store, or raises CastError. Cast functions never raise any other error
type for bad input, so the validation entry point can report every failure
with the property it belongs to.

Record identifiers:
    A record identifier (RID) locates a stored record by cluster id and
    position, written ``#<cluster>:<position>``. Cluster ids above
    MAX_CLUSTER_ID are rejected.

Example:
    >>> str(cast_to_rid("4:10"))
    '#4:10'
    >>> cast_string("  a   b  ")
    'a b'
    >>> cast_integer(" -3 ")
    -3
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..errors import CastError
from .constants import DEFAULT_ROLE, MAX_CLUSTER_ID, PERMISSIONS, READONLY_ROLE

_RID_PATTERN = re.compile(r"^#?-?\d{1,5}:-?\d+$", re.ASCII)
_STRICT_RID_PATTERN = re.compile(r"^#-?\d{1,5}:-?\d+$", re.ASCII)
_INTEGER_PATTERN = re.compile(r"^-?\d+$", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, order=True)
class RecordId:
    """Native record identifier.

    Attributes:
        cluster: Cluster the record is stored in (<= MAX_CLUSTER_ID)
        position: Position of the record within the cluster
    """

    cluster: int
    position: int

    def __str__(self) -> str:
        return f"#{self.cluster}:{self.position}"

    @classmethod
    def parse(cls, text: str, require_hash: bool = False) -> RecordId:
        """Parse the ``#cluster:position`` form.

        Raises:
            CastError: If the text is not a valid record identifier
        """
        if not looks_like_rid(text, require_hash):
            raise CastError(f"not a valid RID ({text})", value=text)
        cluster, position = text.strip().lstrip("#").split(":")
        return cls(int(cluster), int(position))


def looks_like_rid(rid: Any, require_hash: bool = False) -> bool:
    """Check that a string follows the expected format for a record identifier.

    Args:
        rid: The putative identifier
        require_hash: Whether the leading ``#`` is mandatory

    Returns:
        True if the string is a valid identifier

    Example:
        >>> looks_like_rid("#4:10", True)
        True
        >>> looks_like_rid("4:0", True)
        False
        >>> looks_like_rid("#32768:0")
        False
    """
    if not isinstance(rid, str):
        return False
    pattern = _STRICT_RID_PATTERN if require_hash else _RID_PATTERN
    text = rid.strip()
    if not pattern.match(text):
        return False
    cluster_id = int(text.split(":")[0].lstrip("#"))
    return cluster_id <= MAX_CLUSTER_ID


def cast_to_rid(value: Any, require_hash: bool = False) -> RecordId:
    """Cast a value to a RecordId.

    Accepts a RecordId, a mapping carrying an ``@rid`` entry, or a string
    in record identifier form.

    Raises:
        CastError: If the value cannot be interpreted as a record identifier
    """
    if value is None:
        raise CastError("cannot cast null/undefined to RID", value=value)
    if isinstance(value, RecordId):
        return value
    if isinstance(value, Mapping):
        if "@rid" in value:
            return cast_to_rid(value["@rid"], require_hash)
        raise CastError(f"not a valid RID ({value})", value=value)
    if isinstance(value, str) and looks_like_rid(value, require_hash):
        return RecordId.parse(value, require_hash)
    raise CastError(f"not a valid RID ({value})", value=value)


def cast_to_strict_rid(value: Any) -> RecordId:
    """Like cast_to_rid but the leading ``#`` is mandatory on strings."""
    return cast_to_rid(value, require_hash=True)


def cast_nullable_link(value: Any) -> Optional[RecordId]:
    """Cast to a RecordId, mapping None and the string 'null' to None."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == "null":
        return None
    return cast_to_rid(value)


def cast_string(value: Any) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    if value is None:
        raise CastError("cannot cast null to string", value=value)
    return _WHITESPACE.sub(" ", str(value)).strip()


def cast_lowercase_string(value: Any) -> str:
    if value is None:
        raise CastError("cannot cast null to string", value=value)
    return cast_string(value).lower()


def cast_nullable_string(value: Any) -> Optional[str]:
    return None if value is None else cast_string(value)


def cast_lowercase_nullable_string(value: Any) -> Optional[str]:
    return None if value is None else cast_lowercase_string(value)


def cast_lowercase_non_empty_string(value: Any) -> str:
    """Lowercase string cast that rejects the empty string.

    Raises:
        CastError: If the value is null or empty after normalization
    """
    result = cast_lowercase_string(value)
    if not result:
        raise CastError("Cannot be an empty string", value=value)
    return result


def cast_lowercase_non_empty_nullable_string(value: Any) -> Optional[str]:
    return None if value is None else cast_lowercase_non_empty_string(value)


def cast_integer(value: Any) -> int:
    """Strict integer parsing: only ``^-?\\d+$`` after trimming."""
    if value is None or isinstance(value, bool):
        raise CastError(f"{value} is not a valid integer", value=value)
    text = str(value).strip()
    if not _INTEGER_PATTERN.match(text):
        raise CastError(f"{value} is not a valid integer", value=value)
    return int(text)


def cast_boolean(value: Any) -> bool:
    """Accept booleans, 0/1 and the strings true/false (any case)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise CastError(f"{value} is not a valid boolean", value=value)


def cast_uuid(value: Any) -> str:
    """Accept only canonical version 4 UUID strings."""
    try:
        parsed = uuid.UUID(str(value))
    except ValueError:
        raise CastError(f"not a valid version 4 uuid {value}", value=value) from None
    if parsed.version != 4 or str(parsed) != str(value).lower():
        raise CastError(f"not a valid version 4 uuid {value}", value=value)
    return str(value)


def trim_string(value: Any) -> str:
    if value is None:
        raise CastError("cannot cast null to string", value=value)
    return str(value).strip()


def uppercase(value: Any) -> str:
    return trim_string(value).upper()


def time_stamp_now(_record: Any = None) -> int:
    """The current unix epoch in milliseconds."""
    return int(time.time() * 1000)


def generate_uuid(_record: Any = None) -> str:
    """A fresh version 4 UUID string."""
    return str(uuid.uuid4())


def default_permissions(routes: Optional[Mapping[str, bool]] = None) -> dict[str, int]:
    """Derive the default permission table from a class's exposed operations.

    Read access (QUERY or GET) implies READ, POST implies CREATE, PATCH
    implies UPDATE and DELETE implies DELETE. The readonly role is always
    exactly READ.

    Example:
        >>> default_permissions({"QUERY": True, "GET": True})
        {'default': 4, 'readonly': 4}
    """
    routes = routes or {}
    permissions = PERMISSIONS.NONE

    if routes.get("QUERY") or routes.get("GET"):
        permissions |= PERMISSIONS.READ
    if routes.get("POST"):
        permissions |= PERMISSIONS.CREATE
    if routes.get("PATCH"):
        permissions |= PERMISSIONS.UPDATE
    if routes.get("DELETE"):
        permissions |= PERMISSIONS.DELETE

    return {DEFAULT_ROLE: int(permissions), READONLY_ROLE: int(PERMISSIONS.READ)}


# Named functions which definition files may refer to by string
CAST_FUNCTIONS: dict[str, Callable[[Any], Any]] = {
    "castBoolean": cast_boolean,
    "castInteger": cast_integer,
    "castLowercaseNonEmptyNullableString": cast_lowercase_non_empty_nullable_string,
    "castLowercaseNonEmptyString": cast_lowercase_non_empty_string,
    "castLowercaseNullableString": cast_lowercase_nullable_string,
    "castLowercaseString": cast_lowercase_string,
    "castNullableLink": cast_nullable_link,
    "castNullableString": cast_nullable_string,
    "castString": cast_string,
    "castToRID": cast_to_rid,
    "castToStrictRID": cast_to_strict_rid,
    "castUUID": cast_uuid,
    "trimString": trim_string,
    "uppercase": uppercase,
}

DEFAULT_FACTORIES: dict[str, Callable[[Any], Any]] = {
    "timeStampNow": time_stamp_now,
    "uuid4": generate_uuid,
}
