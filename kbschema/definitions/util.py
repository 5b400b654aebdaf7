"""
Shared property and index definitions for the built-in catalog.

BASE_PROPERTIES are raw property definitions; copy them (``{**BASE_PROPERTIES["uuid"]}``)
before overriding keys in a class definition.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..schema.util import cast_string, cast_to_rid, cast_uuid, generate_uuid, time_stamp_now, trim_string


def display_name(record: Mapping[str, Any]) -> Optional[str]:
    """Display name defaulting to the record's name."""
    return record.get("name") or None


def define_simple_index(model: str, prop: str) -> dict[str, Any]:
    return {"name": f"{model}.{prop}", "type": "NOTUNIQUE", "properties": [prop], "class": model}


def active_uuid(class_name: str) -> dict[str, Any]:
    return {
        "name": f"Active{class_name}UUID",
        "type": "UNIQUE",
        "metadata": {"ignoreNullValues": False},
        "properties": ["uuid", "deletedAt"],
        "class": class_name,
    }


BASE_PROPERTIES: dict[str, dict[str, Any]] = {
    "@rid": {
        "name": "@rid",
        "pattern": r"^#\d+:\d+$",
        "description": "The record identifier",
        "cast": cast_to_rid,
        "generated": True,
    },
    "@class": {
        "name": "@class",
        "description": "The database class this record belongs to",
        "cast": trim_string,
    },
    "uuid": {
        "name": "uuid",
        "type": "string",
        "mandatory": True,
        "nullable": False,
        "readOnly": True,
        "description": "Internal identifier for tracking record history",
        "cast": cast_uuid,
        "default": generate_uuid,
        "generated": True,
        "examples": ["4198e211-e761-4771-b6f8-dadbcc44e9b9"],
    },
    "createdAt": {
        "name": "createdAt",
        "type": "long",
        "mandatory": True,
        "nullable": False,
        "description": "The timestamp at which the record was created",
        "default": time_stamp_now,
        "generated": True,
        "examples": [1547245339649],
    },
    "updatedAt": {
        "name": "updatedAt",
        "type": "long",
        "mandatory": True,
        "nullable": False,
        "description": "The timestamp at which the record was last updated",
        "default": time_stamp_now,
        "generated": True,
        "examples": [1547245339649],
    },
    "createdBy": {
        "name": "createdBy",
        "type": "link",
        "mandatory": True,
        "nullable": False,
        "linkedClass": "User",
        "description": "The user who created the record",
        "generated": True,
        "examples": ["#31:1"],
    },
    "updatedBy": {
        "name": "updatedBy",
        "type": "link",
        "mandatory": True,
        "nullable": False,
        "linkedClass": "User",
        "description": "The user who last updated the record",
        "generated": True,
        "examples": ["#31:1"],
    },
    "deletedAt": {
        "name": "deletedAt",
        "type": "long",
        "nullable": False,
        "description": "The timestamp at which the record was deleted",
        "generated": True,
        "examples": [1547245339649],
    },
    "deletedBy": {
        "name": "deletedBy",
        "type": "link",
        "nullable": False,
        "linkedClass": "User",
        "description": "The user who deleted the record",
        "generated": True,
        "examples": ["#31:1"],
    },
    "history": {
        "name": "history",
        "type": "link",
        "nullable": False,
        "description": "Link to the previous version of this record",
        "generated": True,
        "examples": ["#31:1"],
    },
    "groupRestrictions": {
        "name": "groupRestrictions",
        "type": "linkset",
        "linkedClass": "UserGroup",
        "description": "User groups allowed to interact with this record",
        "examples": [["#33:1", "#33:2"]],
    },
    "in": {
        "name": "in",
        "type": "link",
        "mandatory": True,
        "nullable": False,
        "description": "The record the edge goes into (the target vertex)",
    },
    "out": {
        "name": "out",
        "type": "link",
        "mandatory": True,
        "nullable": False,
        "description": "The record the edge comes from (the source vertex)",
    },
    "displayName": {
        "name": "displayName",
        "type": "string",
        "description": "Optional string used for display. Can be overwritten without tracking",
        "default": display_name,
        "generationDependencies": True,
        "cast": cast_string,
    },
}
