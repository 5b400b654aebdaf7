"""
Schema registry and linker.

compile_schema turns raw class definitions into a SchemaRegistry: a frozen
mapping of class name to linked ClassModel. It provides:
- Disjoint merge of several definition sets
- Synthesis of the embedded Permissions class
- Two-phase construction: every model exists before any link is made
- Lookup by name, reverse edge name, route or record
- Schema fingerprinting for consistency checks

Invariants:
    - Class names are unique across all definition sets
    - Every parent, linked class and edge endpoint exists in the registry
    - Inheritance is acyclic
    - After compile_schema returns, no model can be modified
    - The fingerprint depends only on the compiled definitions

How to change safely:
    - Keep each phase complete before the next starts; linking relies on
      every model having been instantiated
    - Raw class keys live in _CLASS_KEYS; keep it in sync with _instantiate

Example:
    >>> registry = compile_schema([{
    ...     "Base": {"properties": [{"name": "id", "mandatory": True, "nullable": False}]},
    ...     "Child": {"inherits": ["Base"], "properties": [{"name": "extra"}]},
    ... }])
    >>> sorted(registry["Child"].effective_properties())
    ['extra', 'id']
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from difflib import get_close_matches
from typing import Any, Iterable, Iterator, Optional, Union

from ..errors import SchemaDefinitionError, UnknownClassError
from .constants import EXPOSE_NONE, PERMISSIONS, PERMISSIONS_CLASS, ROOT_CLASSES
from .model import ClassModel, ConflictHandler, IndexDefinition
from .property import Property
from .validate import format_record, validate_record

logger = logging.getLogger(__name__)

INHERITANCE_POLICIES = ("warn", "error", "last_wins")

_CLASS_KEYS = frozenset(
    {
        "description",
        "isAbstract",
        "isEdge",
        "embedded",
        "reverseName",
        "sourceModel",
        "targetModel",
        "routes",
        "permissions",
        "properties",
        "indices",
        "inherits",
        "uniqueNonIndexedProps",
    }
)

RawDefinitions = Mapping[str, Mapping[str, Any]]


class SchemaRegistry:
    """Complete, linked, read-only set of class models.

    Thread-safety:
        - Immutable after construction; lookups are lock-free

    Attributes:
        fingerprint: SHA-256 hash of the canonical JSON form

    Example:
        >>> registry.get("disease").name
        'Disease'
        >>> registry.get({"@class": "Therapy"}).route_name
        '/therapies'
    """

    def __init__(self, models: Mapping[str, ClassModel]) -> None:
        self._models: dict[str, ClassModel] = dict(models)
        self._by_normalized_name: dict[str, ClassModel] = {}
        for model in self._models.values():
            self._by_normalized_name[model.name.lower()] = model
        for model in self._models.values():
            self._by_normalized_name.setdefault(model.reverse_name.lower(), model)
        self._fingerprint = self._compute_fingerprint()

    @property
    def fingerprint(self) -> str:
        """Schema fingerprint, 'sha256:<hex>'."""
        return self._fingerprint

    def __getitem__(self, name: str) -> ClassModel:
        return self._models[name]

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def names(self) -> list[str]:
        return list(self._models)

    def items(self) -> Iterator[tuple[str, ClassModel]]:
        yield from self._models.items()

    def get(
        self,
        name_or_record: Union[str, ClassModel, Mapping[str, Any]],
        strict: bool = True,
    ) -> Optional[ClassModel]:
        """Get a model by name, reverse edge name, or a record's @class.

        Lookup by name is case-insensitive.

        Args:
            name_or_record: Class name, ClassModel, or record with "@class"
            strict: Raise instead of returning None when not found

        Raises:
            UnknownClassError: If strict and no model matches
        """
        if isinstance(name_or_record, ClassModel):
            name: Any = name_or_record.name
        elif isinstance(name_or_record, Mapping):
            name = name_or_record.get("@class")
        else:
            name = name_or_record

        model = self._by_normalized_name.get(name.lower()) if isinstance(name, str) else None
        if model is None and strict:
            suggestions = get_close_matches(str(name), list(self._models), n=3, cutoff=0.6)
            raise UnknownClassError(str(name), suggestions=suggestions)
        return model

    def has(self, name_or_record: Union[str, ClassModel, Mapping[str, Any]]) -> bool:
        return self.get(name_or_record, strict=False) is not None

    def models(self) -> list[ClassModel]:
        return list(self._models.values())

    def edge_models(self) -> list[ClassModel]:
        return [model for model in self._models.values() if model.is_edge]

    def get_from_route(self, route: str) -> ClassModel:
        """Get the exposed model whose route_name matches route.

        Raises:
            UnknownClassError: If no exposed model uses the route
        """
        for model in self._models.values():
            if model.expose and model.route_name == route:
                return model
        routes = [model.route_name for model in self._models.values() if model.expose]
        raise UnknownClassError(route, suggestions=get_close_matches(route, routes, n=3))

    def split_class_levels(self) -> list[list[str]]:
        """Group class names into creation levels.

        A class appears after its parents, the classes its properties link
        to and its edge endpoints. The root classes are always level 0.
        Where links alone form a cycle, the remaining classes are ranked by
        inheritance only.

        Returns:
            Lists of class names, one per level, each sorted
        """
        ranks: dict[str, int] = {name: 0 for name in ROOT_CLASSES if name in self._models}
        pending = [name for name in self._models if name not in ranks]
        links_only_by_inheritance = False

        while pending:
            still_pending = []
            for name in pending:
                deps = self._dependencies(self._models[name], links_only_by_inheritance)
                if all(dep in ranks for dep in deps):
                    ranks[name] = max((ranks[dep] + 1 for dep in deps), default=0)
                else:
                    still_pending.append(name)
            if len(still_pending) == len(pending):
                if links_only_by_inheritance:
                    raise SchemaDefinitionError(
                        f"Unable to order classes: {sorted(still_pending)}"
                    )
                logger.debug(f"Link cycle among {sorted(still_pending)}; ranking by inheritance")
                links_only_by_inheritance = True
            pending = still_pending

        levels: list[list[str]] = [[] for _ in range(max(ranks.values(), default=-1) + 1)]
        for name, rank in ranks.items():
            levels[rank].append(name)
        return [sorted(level) for level in levels]

    @staticmethod
    def _dependencies(model: ClassModel, inheritance_only: bool) -> set[str]:
        deps = {parent.name for parent in model.parents}
        if not inheritance_only:
            for prop in model.own_properties.values():
                if prop.linked_class is not None:
                    deps.add(prop.linked_class_name)
            for endpoint in (model.source_model, model.target_model):
                if endpoint:
                    deps.add(endpoint)
        deps.discard(model.name)
        return deps

    def queryable_properties(self, name: str) -> dict[str, Property]:
        """Properties usable when querying name (including subclasses)."""
        return self.get(name).query_properties()

    def permissions_for(self, name: str, role: str) -> PERMISSIONS:
        """Permission bitmask of role on the named class."""
        return PERMISSIONS(self.get(name).permissions_for(role))

    def validate_record(
        self, name_or_record: Union[str, ClassModel, Mapping[str, Any]], record: Mapping[str, Any], **options: Any
    ) -> tuple[dict[str, Any], list]:
        """Validate record against a class; see kbschema.schema.validate."""
        return validate_record(self.get(name_or_record), record, **options)

    def format_record(
        self, name_or_record: Union[str, ClassModel, Mapping[str, Any]], record: Mapping[str, Any], **options: Any
    ) -> dict[str, Any]:
        """Validate and cast record, raising ValidationError on failure."""
        return format_record(self.get(name_or_record), record, **options)

    def get_preview(self, record: Any) -> str:
        """Short label for a record, a list of records or an edge-like value.

        Tries displayName, name and @rid in that order. Lists are shown by
        their length; a mapping with a nested ``target`` record is shown as
        that record.

        Example:
            >>> registry.get_preview({"name": "cancer", "@rid": "#13:1"})
            'cancer'
            >>> registry.get_preview([{"@rid": "#1:1"}, {"@rid": "#1:2"}])
            '2'
        """
        if isinstance(record, Mapping):
            for key in ("displayName", "name", "@rid"):
                if record.get(key):
                    return str(record[key])
            target = record.get("target")
            if isinstance(target, (Mapping, list, tuple)):
                return self.get_preview(target)
        elif isinstance(record, (list, tuple)):
            return str(len(record))
        return str(record)

    def _compute_fingerprint(self) -> str:
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict[str, Any]:
        """Convert registry to dictionary representation, sorted by name."""
        return {"classes": [self._models[name].to_dict() for name in sorted(self._models)]}

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert registry to JSON string.

        Args:
            indent: JSON indentation (None for compact)
        """
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, default=str)


def merge_definitions(definition_sets: Iterable[RawDefinitions]) -> dict[str, Mapping[str, Any]]:
    """Disjoint union of raw definition sets.

    Raises:
        SchemaDefinitionError: If a class name appears in more than one set
    """
    merged: dict[str, Mapping[str, Any]] = {}
    for definitions in definition_sets:
        for name, raw in definitions.items():
            if name in merged:
                raise SchemaDefinitionError(
                    f"Invalid schema definitions. Duplicate key ({name})", class_name=name
                )
            merged[name] = raw
    return merged


def compile_schema(
    definition_sets: Union[RawDefinitions, Iterable[RawDefinitions]],
    *,
    inheritance_conflicts: str = "warn",
) -> SchemaRegistry:
    """Compile raw definition sets into a linked, frozen registry.

    Args:
        definition_sets: One mapping of class name to raw definition, or
            several such mappings to be merged
        inheritance_conflicts: What to do when unrelated ancestors supply
            different descriptors under one name: "warn" (later parent wins,
            logged), "error", or "last_wins" (silent)

    Returns:
        The compiled SchemaRegistry

    Raises:
        SchemaDefinitionError: If the definitions cannot be compiled
    """
    if inheritance_conflicts not in INHERITANCE_POLICIES:
        raise ValueError(
            f"Invalid inheritance conflict policy '{inheritance_conflicts}'. "
            f"Valid policies: {list(INHERITANCE_POLICIES)}"
        )
    if isinstance(definition_sets, Mapping):
        definition_sets = [definition_sets]

    merged = merge_definitions(definition_sets)
    logger.debug(f"Merged {len(merged)} class definitions")

    merged = _with_permissions_class(merged)

    models = {name: _instantiate(name, raw) for name, raw in merged.items()}
    logger.debug(f"Instantiated {len(models)} class models")

    for name, raw in merged.items():
        for parent_name in raw.get("inherits") or ():
            parent = models.get(parent_name)
            if parent is None:
                raise SchemaDefinitionError(
                    f"[{name}] inherits from undefined class {parent_name}", class_name=name
                )
            models[name].add_parent(parent)
    _check_cycles(models)
    logger.debug("Linked class ancestry")

    for model in models.values():
        for prop in list(model.own_properties.values()):
            if isinstance(prop.linked_class, str):
                target = models.get(prop.linked_class)
                if target is None:
                    raise SchemaDefinitionError(
                        f"[{model.name}] {prop.name} links to undefined class {prop.linked_class}",
                        class_name=model.name,
                        property_name=prop.name,
                    )
                model.resolve_link(prop.name, target)
        for endpoint in (model.source_model, model.target_model):
            if endpoint and endpoint not in models:
                raise SchemaDefinitionError(
                    f"[{model.name}] edge endpoint {endpoint} is not defined", class_name=model.name
                )
    logger.debug("Linked property references")

    on_conflict = _conflict_handler(inheritance_conflicts)
    for model in models.values():
        model.freeze(on_conflict)

    for model in models.values():
        _check_indices(model, models)

    registry = SchemaRegistry(models)
    logger.info(
        f"Schema registry compiled with {len(models)} classes "
        f"({len(registry.edge_models())} edges), fingerprint={registry.fingerprint}"
    )
    return registry


def _with_permissions_class(merged: Mapping[str, Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
    """Add (or extend) the embedded class holding one bitmask per class."""
    bitmasks = [
        {
            "name": name,
            "type": "integer",
            "min": int(PERMISSIONS.NONE),
            "max": int(PERMISSIONS.ALL),
            "nullable": False,
        }
        for name, raw in merged.items()
        if name != PERMISSIONS_CLASS and not raw.get("embedded")
    ]
    existing = merged.get(PERMISSIONS_CLASS)
    if existing is not None:
        carrier = {**existing, "properties": [*(existing.get("properties") or ()), *bitmasks]}
    else:
        carrier = {
            "description": "Permission bitmasks, one per class",
            "embedded": True,
            "routes": dict(EXPOSE_NONE),
            "properties": bitmasks,
        }
    result: dict[str, Mapping[str, Any]] = {PERMISSIONS_CLASS: carrier}
    result.update((name, raw) for name, raw in merged.items() if name != PERMISSIONS_CLASS)
    return result


def _instantiate(name: str, raw: Mapping[str, Any]) -> ClassModel:
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(f"[{name}] class definition must be a mapping", class_name=name)
    unexpected = set(raw) - _CLASS_KEYS
    if unexpected:
        raise SchemaDefinitionError(
            f"[{name}] class definition does not accept: {sorted(unexpected)}", class_name=name
        )

    indices = tuple(IndexDefinition.from_dict(index, name) for index in raw.get("indices") or ())
    indexed = {i.properties[0] for i in indices if i.class_name == name and i.marks_indexed}
    fulltext = {i.properties[0] for i in indices if i.class_name == name and i.marks_fulltext}

    properties = []
    for prop_raw in raw.get("properties") or ():
        try:
            prop_name = prop_raw.get("name") if isinstance(prop_raw, Mapping) else None
            properties.append(
                Property.from_dict(
                    prop_raw,
                    indexed=prop_name in indexed,
                    fulltext_indexed=prop_name in fulltext,
                )
            )
        except SchemaDefinitionError as err:
            raise SchemaDefinitionError(
                f"[{name}] {err.message}", class_name=name, property_name=err.property_name
            ) from err

    return ClassModel(
        name,
        properties,
        description=raw.get("description") or "",
        is_abstract=bool(raw.get("isAbstract", False)),
        is_edge=bool(raw.get("isEdge", False)),
        embedded=bool(raw.get("embedded", False)),
        reverse_name=raw.get("reverseName"),
        source_model=raw.get("sourceModel"),
        target_model=raw.get("targetModel"),
        routes=raw.get("routes"),
        permissions=raw.get("permissions"),
        indices=indices,
        unique_non_indexed_props=raw.get("uniqueNonIndexedProps") or (),
    )


def _check_cycles(models: Mapping[str, ClassModel]) -> None:
    """Reject circular inheritance, naming the cycle."""
    visiting: list[str] = []
    done: set[str] = set()

    def visit(model: ClassModel) -> None:
        if model.name in done:
            return
        if model.name in visiting:
            cycle = visiting[visiting.index(model.name):] + [model.name]
            raise SchemaDefinitionError(
                f"Circular inheritance: {' -> '.join(cycle)}", class_name=model.name
            )
        visiting.append(model.name)
        for parent in model.parents:
            visit(parent)
        visiting.pop()
        done.add(model.name)

    for model in models.values():
        visit(model)


def _check_indices(model: ClassModel, models: Mapping[str, ClassModel]) -> None:
    for index in model.indices:
        target = models.get(index.class_name)
        if target is None:
            raise SchemaDefinitionError(
                f"[{model.name}] index {index.name} targets undefined class {index.class_name}",
                class_name=model.name,
            )
        effective = target.effective_properties()
        for prop_name in index.properties:
            if prop_name not in effective:
                raise SchemaDefinitionError(
                    f"[{model.name}] index {index.name} uses property {prop_name} "
                    f"which {index.class_name} does not have",
                    class_name=model.name,
                    property_name=prop_name,
                )


def _conflict_handler(policy: str) -> Optional[ConflictHandler]:
    if policy == "last_wins":
        return None

    def handle(model: ClassModel, name: str, current: Property, incoming: Property) -> None:
        message = (
            f"[{model.name}] property {name} is inherited from more than one parent "
            f"with different definitions"
        )
        if policy == "error":
            raise SchemaDefinitionError(message, class_name=model.name, property_name=name)
        logger.warning(f"{message}; using the later parent's definition")

    return handle
