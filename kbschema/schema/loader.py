"""
Definition file loading.

Definition files are YAML or JSON documents mapping class names to raw
class definitions, using the same camelCase keys as Python definitions.
Functions cannot be written in a file, so three keys are resolved by name:

    Disease:
      inherits: [Ontology]
      properties:
        - name: name
          cast: castString              # any name in CAST_FUNCTIONS
        - name: createdAt
          type: long
          default: {factory: timeStampNow}   # any name in DEFAULT_FACTORIES
        - name: parent
          check: looksLikeRID           # any name in CHECK_FUNCTIONS
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Iterable, Union

import yaml

from ..errors import SchemaDefinitionError
from .util import CAST_FUNCTIONS, DEFAULT_FACTORIES, looks_like_rid

logger = logging.getLogger(__name__)

CHECK_FUNCTIONS: dict[str, Callable[[Any], bool]] = {
    "looksLikeRID": looks_like_rid,
}


def _lookup(
    table: Mapping[str, Callable[..., Any]], name: Any, key: str, class_name: str, prop_name: Any
) -> Callable[..., Any]:
    if callable(name):
        return name
    try:
        return table[name]
    except (KeyError, TypeError):
        raise SchemaDefinitionError(
            f"[{class_name}] unknown {key} function {name!r} for {prop_name}. "
            f"Valid: {sorted(table)}",
            class_name=class_name,
            property_name=prop_name if isinstance(prop_name, str) else None,
        ) from None


def _resolve_property(class_name: str, raw: Any) -> Any:
    if not isinstance(raw, Mapping):
        return raw
    prop = dict(raw)
    name = prop.get("name")
    if "cast" in prop and prop["cast"] is not None:
        prop["cast"] = _lookup(CAST_FUNCTIONS, prop["cast"], "cast", class_name, name)
    if "check" in prop and prop["check"] is not None:
        prop["check"] = _lookup(CHECK_FUNCTIONS, prop["check"], "check", class_name, name)
    default = prop.get("default")
    if isinstance(default, Mapping) and set(default) == {"factory"}:
        prop["default"] = _lookup(DEFAULT_FACTORIES, default["factory"], "default", class_name, name)
    return prop


def resolve_functions(definitions: Mapping[str, Any]) -> dict[str, Any]:
    """Replace named cast/check/default functions with the functions themselves.

    Raises:
        SchemaDefinitionError: If a name is unknown or the document is not a
            mapping of class definitions
    """
    if not isinstance(definitions, Mapping):
        raise SchemaDefinitionError(
            f"Definition document must map class names to definitions, got {type(definitions).__name__}"
        )
    resolved: dict[str, Any] = {}
    for class_name, raw in definitions.items():
        if not isinstance(raw, Mapping):
            raise SchemaDefinitionError(
                f"[{class_name}] class definition must be a mapping", class_name=class_name
            )
        entry = dict(raw)
        if entry.get("properties") is not None:
            entry["properties"] = [_resolve_property(class_name, p) for p in entry["properties"]]
        resolved[class_name] = entry
    return resolved


def parse_yaml(yaml_str: str) -> dict[str, Any]:
    """Parse definitions from YAML string."""
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as err:
        raise SchemaDefinitionError(f"Invalid YAML definitions: {err}") from err
    return resolve_functions(data or {})


def parse_json(json_str: str) -> dict[str, Any]:
    """Parse definitions from JSON string."""
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as err:
        raise SchemaDefinitionError(f"Invalid JSON definitions: {err}") from err
    return resolve_functions(data or {})


def load_file(path: Union[str, Path]) -> dict[str, Any]:
    """Load one definition file; the format follows the file suffix.

    Raises:
        SchemaDefinitionError: If the file has an unsupported suffix or
            invalid content
        OSError: If the file cannot be read
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        definitions = parse_yaml(text)
    elif suffix == ".json":
        definitions = parse_json(text)
    else:
        raise SchemaDefinitionError(f"Unsupported definition file type: {path}")
    logger.debug(f"Loaded {len(definitions)} class definitions from {path}")
    return definitions


def load_files(paths: Iterable[Union[str, Path]]) -> list[dict[str, Any]]:
    """Load several definition files, one definition set per file."""
    return [load_file(path) for path in paths]
