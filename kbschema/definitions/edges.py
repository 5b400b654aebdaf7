"""The root edge class and the relationships between ontology terms."""

from __future__ import annotations

from typing import Any

from ..schema.constants import EXPOSE_READ
from .util import BASE_PROPERTIES, active_uuid, define_simple_index

_ONTOLOGY_EDGES: dict[str, dict[str, Any]] = {
    "AliasOf": {
        "reverseName": "HasAlias",
        "description": "The source record is an equivalent representation of the target record, "
        "both of which are from the same source",
    },
    "CrossReferenceOf": {
        "reverseName": "HasCrossReference",
        "description": "The source record is an equivalent representation of the target record "
        "from a different source",
    },
    "DeprecatedBy": {
        "reverseName": "Deprecates",
        "description": "The target record is a newer version of the source record",
    },
    "ElementOf": {
        "reverseName": "HasElement",
        "description": "The source record is part of (or contained within) the target record",
    },
    "SubClassOf": {
        "reverseName": "HasSubclass",
        "description": "The source record is a subset of the target record",
    },
    "TargetOf": {
        "reverseName": "HasTarget",
        "description": "The source record is a target of the target record",
        "extraProperties": [
            {
                "name": "actionType",
                "description": "The type of action between the gene and drug",
                "examples": ["inhibitor"],
            },
        ],
    },
}


def _ontology_edge(name: str, options: dict[str, Any]) -> dict[str, Any]:
    options = dict(options)
    extra = options.pop("extraProperties", [])
    return {
        "isEdge": True,
        "inherits": ["E"],
        "sourceModel": "Ontology",
        "targetModel": "Ontology",
        "properties": [
            {**BASE_PROPERTIES["in"]},
            {**BASE_PROPERTIES["out"]},
            {"name": "source", "type": "link", "linkedClass": "Source"},
            *extra,
        ],
        # on the class itself so it does not apply across edge classes
        "indices": [
            {
                "name": f"{name}.restrictMultiplicity",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": False},
                "properties": ["deletedAt", "in", "out", "source"],
                "class": name,
            },
        ],
        **options,
    }


DEFINITIONS: dict[str, dict[str, Any]] = {
    "E": {
        "description": "Edges",
        "routes": dict(EXPOSE_READ),
        "isAbstract": True,
        "isEdge": True,
        "properties": [
            {**BASE_PROPERTIES["@rid"]},
            {**BASE_PROPERTIES["@class"]},
            {**BASE_PROPERTIES["uuid"]},
            {**BASE_PROPERTIES["createdAt"]},
            {**BASE_PROPERTIES["createdBy"]},
            {**BASE_PROPERTIES["deletedAt"]},
            {**BASE_PROPERTIES["deletedBy"]},
            {**BASE_PROPERTIES["history"]},
            {"name": "comment", "type": "string"},
        ],
        "indices": [active_uuid("E"), define_simple_index("E", "createdAt")],
    },
    **{name: _ontology_edge(name, options) for name, options in _ONTOLOGY_EDGES.items()},
}
