"""Ontology terms: the abstract Ontology class and a few concrete term classes."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..schema.constants import EXPOSE_READ
from ..schema.util import cast_nullable_string
from .util import BASE_PROPERTIES


def default_term_name(record: Mapping[str, Any]) -> Optional[str]:
    """Terms without a name are named after their source identifier."""
    return record.get("sourceId")


def display_term(record: Mapping[str, Any]) -> Optional[str]:
    """Name, followed by the source identifier when the two differ."""
    name = record.get("name")
    source_id = record.get("sourceId")
    if not name:
        return source_id
    if source_id and source_id != name:
        return f"{name} [{source_id.upper()}]"
    return name


def _lowercase_item(item: Any) -> str:
    return str(item).strip().lower()


def _single_index(name: str, kind: str, prop: str) -> dict[str, Any]:
    return {"name": name, "type": kind, "properties": [prop], "class": "Ontology"}


DEFINITIONS: dict[str, dict[str, Any]] = {
    "Ontology": {
        "routes": dict(EXPOSE_READ),
        "inherits": ["V", "Biomarker"],
        "isAbstract": True,
        "indices": [
            {
                "name": "Ontology.active",
                "type": "UNIQUE",
                "metadata": {"ignoreNullValues": False},
                "properties": ["source", "sourceId", "name", "deletedAt", "sourceIdVersion"],
                "class": "Ontology",
            },
            _single_index("Ontology.source", "NOTUNIQUE_HASH_INDEX", "source"),
            _single_index("Ontology.name", "NOTUNIQUE_HASH_INDEX", "name"),
            _single_index("Ontology.sourceId", "NOTUNIQUE_HASH_INDEX", "sourceId"),
            _single_index("Ontology.name_fulltext", "FULLTEXT", "name"),
            _single_index("Ontology.sourceId_fulltext", "FULLTEXT", "sourceId"),
        ],
        "properties": [
            {
                "name": "source",
                "type": "link",
                "mandatory": True,
                "nullable": False,
                "linkedClass": "Source",
                "description": "Link to the source from which this record is defined",
            },
            {
                "name": "sourceId",
                "mandatory": True,
                "nullable": False,
                "nonEmpty": True,
                "description": "The identifier of the term in the external source",
            },
            {
                "name": "dependency",
                "type": "link",
                "description": "If this term is defined as part of another term, the original term",
            },
            {
                "name": "name",
                "nullable": False,
                "nonEmpty": True,
                "default": default_term_name,
                "generationDependencies": True,
                "description": "Name of the term",
            },
            {"name": "sourceIdVersion", "description": "The version of the identifier in the external source"},
            {"name": "description", "type": "string", "cast": cast_nullable_string},
            {"name": "longName", "type": "string", "cast": cast_nullable_string},
            {
                "name": "subsets",
                "type": "embeddedset",
                "linkedType": "string",
                "description": "Names of subsets this term belongs to",
                "cast": _lowercase_item,
            },
            {
                "name": "deprecated",
                "type": "boolean",
                "default": False,
                "nullable": False,
                "mandatory": True,
                "description": "True when the term was deprecated by the external source",
            },
            {
                "name": "alias",
                "type": "boolean",
                "default": False,
                "nullable": False,
                "mandatory": True,
                "description": "True when the term is an alias of the sourceId attributed to it",
            },
            {"name": "url", "type": "string"},
            {**BASE_PROPERTIES["displayName"], "default": display_term},
        ],
    },
    "EvidenceLevel": {
        "inherits": ["Evidence", "Ontology"],
        "description": "Evidence Classification Term",
        "properties": [
            {
                "name": "preclinical",
                "type": "boolean",
                "description": "True when intended for studies on preclinical models",
            },
        ],
    },
    "Disease": {
        "inherits": ["Ontology"],
    },
    "Therapy": {
        "inherits": ["Ontology"],
        "properties": [
            {"name": "mechanismOfAction", "type": "string"},
            {"name": "molecularFormula", "type": "string"},
            {"name": "iupacName", "type": "string"},
        ],
    },
}
