"""Root vertex class and the general purpose classes every catalog needs."""

from __future__ import annotations

from typing import Any

from ..schema.constants import EXPOSE_READ, PERMISSIONS
from .util import BASE_PROPERTIES, active_uuid, define_simple_index

DEFINITIONS: dict[str, dict[str, Any]] = {
    "V": {
        "description": "Vertices",
        "routes": dict(EXPOSE_READ),
        "isAbstract": True,
        "properties": [
            {**BASE_PROPERTIES["@rid"]},
            {**BASE_PROPERTIES["@class"]},
            {**BASE_PROPERTIES["uuid"]},
            {**BASE_PROPERTIES["createdAt"]},
            {**BASE_PROPERTIES["createdBy"]},
            {**BASE_PROPERTIES["updatedAt"]},
            {**BASE_PROPERTIES["updatedBy"]},
            {**BASE_PROPERTIES["deletedAt"]},
            {**BASE_PROPERTIES["deletedBy"]},
            {**BASE_PROPERTIES["history"]},
            {"name": "comment", "type": "string"},
            {**BASE_PROPERTIES["groupRestrictions"]},
        ],
        "indices": [
            active_uuid("V"),
            define_simple_index("V", "createdAt"),
            define_simple_index("V", "updatedAt"),
        ],
    },
    "Evidence": {
        "routes": dict(EXPOSE_READ),
        "description": "Classes which can be used as support for statements",
        "isAbstract": True,
    },
    "Biomarker": {
        "routes": dict(EXPOSE_READ),
        "isAbstract": True,
    },
    "Source": {
        "permissions": {
            "default": int(PERMISSIONS.READ),
            "admin": int(PERMISSIONS.ALL),
            "regular": int(PERMISSIONS.CREATE | PERMISSIONS.UPDATE | PERMISSIONS.READ),
            "manager": int(PERMISSIONS.CREATE | PERMISSIONS.UPDATE | PERMISSIONS.READ),
        },
        "description": (
            "External database, collection, or other authority which is used as "
            "reference for other entries"
        ),
        "inherits": ["V", "Evidence"],
        "properties": [
            {"name": "name", "mandatory": True, "nullable": False, "description": "Name of the source"},
            {
                "name": "longName",
                "description": "More descriptive name if applicable",
                "examples": ["Disease Ontology (DO)"],
            },
            {"name": "version", "description": "The source version"},
            {"name": "url", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "license", "description": "Content of the license agreement (if non-standard)"},
            {"name": "licenseType", "description": "Standard license type", "examples": ["MIT"]},
            {
                "name": "sort",
                "type": "integer",
                "default": 99999,
                "description": "Ordering hint for auto-complete; lower sorts first",
                "examples": [1],
            },
            {**BASE_PROPERTIES["displayName"]},
        ],
        "indices": [
            {
                "name": "Source.active",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": False},
                "properties": ["name", "version", "deletedAt"],
                "class": "Source",
            },
            {"name": "Source.name", "type": "NOTUNIQUE", "properties": ["name"], "class": "Source"},
        ],
    },
    "LicenseAgreement": {
        "permissions": {
            "default": int(PERMISSIONS.READ),
            "admin": int(PERMISSIONS.ALL),
            "regular": int(PERMISSIONS.READ),
            "manager": int(PERMISSIONS.READ),
        },
        "properties": [
            {
                "name": "enactedAt",
                "type": "long",
                "mandatory": True,
                "nullable": False,
                "description": "The timestamp at which these terms of use were put into action",
                "default": BASE_PROPERTIES["createdAt"]["default"],
                "generated": True,
                "examples": [1547245339649],
            },
            {"name": "content", "type": "embeddedlist", "mandatory": True, "nullable": False},
        ],
    },
}
