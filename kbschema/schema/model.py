"""
Class models for the schema compiler.

This module defines:
- IndexKind / IndexDefinition: Index declarations (metadata only)
- ModelState: Lifecycle of a class model
- ClassModel: One class with its own and effective properties

Invariants:
    - A model is mutated only by add_parent and resolve_link, and only
      before it is frozen
    - Effective properties are computed once, when the model is frozen
    - Among ancestors the later-declared parent wins; the class's own
      properties always win
    - Indices are never propagated to subclasses

How to change safely:
    - Keep _compose deterministic: it feeds the registry fingerprint
    - New raw class keys must be parsed by the registry, not here
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Optional, Union

from ..errors import RegistryFrozenError, SchemaDefinitionError, UnknownClassError
from .constants import (
    DEFAULT_ROLE,
    EXPOSE_ALL,
    EXPOSE_EDGE,
    EXPOSE_NONE,
    PERMISSIONS,
    READONLY_ROLE,
    Operation,
)
from .property import Property
from .util import default_permissions

logger = logging.getLogger(__name__)

# Called as (model, property_name, current, incoming) when two unrelated
# ancestors contribute different descriptors under the same name
ConflictHandler = Callable[["ClassModel", str, Property, Property], None]

_CONSONANT_Y = re.compile(r".*[^aeiou]y$", re.IGNORECASE)


class IndexKind(Enum):
    """Index types understood by the storage layer."""

    UNIQUE = "UNIQUE"
    NOTUNIQUE = "NOTUNIQUE"
    UNIQUE_HASH_INDEX = "UNIQUE_HASH_INDEX"
    NOTUNIQUE_HASH_INDEX = "NOTUNIQUE_HASH_INDEX"
    FULLTEXT_HASH_INDEX = "FULLTEXT_HASH_INDEX"
    FULLTEXT = "FULLTEXT"

    @classmethod
    def from_str(cls, value: str) -> IndexKind:
        """Convert string representation (any case) to IndexKind.

        Raises:
            ValueError: If value is not a valid index type
        """
        for kind in cls:
            if kind.value == str(value).upper():
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid index type '{value}'. Valid types: {valid}")

    @property
    def is_fulltext(self) -> bool:
        return self in (IndexKind.FULLTEXT_HASH_INDEX, IndexKind.FULLTEXT)


@dataclass(frozen=True)
class IndexDefinition:
    """Declaration of an index on one class.

    Attributes:
        name: Index name (e.g. "Disease.active")
        kind: Index type
        properties: Indexed property names, in order
        class_name: Class the index is created on
        ignore_null_values: Whether null values are left out of the index
    """

    name: str
    kind: IndexKind
    properties: tuple[str, ...]
    class_name: str
    ignore_null_values: Optional[bool] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaDefinitionError("Index name cannot be empty", class_name=self.class_name)
        if not self.properties:
            raise SchemaDefinitionError(
                f"Index '{self.name}' must name at least one property", class_name=self.class_name
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], class_name: str) -> IndexDefinition:
        """Create from a raw index definition declared on class_name.

        Raises:
            SchemaDefinitionError: If the definition is malformed
        """
        if not isinstance(data, Mapping):
            raise SchemaDefinitionError(
                f"Index definition must be a mapping, got {data!r}", class_name=class_name
            )
        unexpected = set(data) - {"name", "type", "properties", "class", "metadata"}
        if unexpected:
            raise SchemaDefinitionError(
                f"Index {data.get('name')!r} does not accept: {sorted(unexpected)}",
                class_name=class_name,
            )
        try:
            kind = IndexKind.from_str(data.get("type", ""))
        except ValueError as err:
            raise SchemaDefinitionError(str(err), class_name=class_name) from err

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise SchemaDefinitionError(
                f"Index {data.get('name')!r} metadata must be a mapping, got {metadata!r}",
                class_name=class_name,
            )
        properties = data.get("properties") or ()
        if not isinstance(properties, (list, tuple)):
            raise SchemaDefinitionError(
                f"Index {data.get('name')!r} properties must be a list of names, got {properties!r}",
                class_name=class_name,
            )
        ignore_null = metadata.get("ignoreNullValues")
        return cls(
            name=data.get("name", ""),
            kind=kind,
            properties=tuple(properties),
            class_name=data.get("class") or class_name,
            ignore_null_values=ignore_null,
        )

    @property
    def marks_indexed(self) -> bool:
        """Single-property hash index: sets the property's indexed flag."""
        return len(self.properties) == 1 and self.kind == IndexKind.NOTUNIQUE_HASH_INDEX

    @property
    def marks_fulltext(self) -> bool:
        """Single-property full text index: sets fulltext_indexed."""
        return len(self.properties) == 1 and self.kind.is_fulltext

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.kind.value,
            "properties": list(self.properties),
            "class": self.class_name,
        }
        if self.ignore_null_values is not None:
            result["metadata"] = {"ignoreNullValues": self.ignore_null_values}
        return result


class ModelState(Enum):
    """Lifecycle of a class model during compilation."""

    DRAFT = "draft"
    LINKING = "linking"
    LINKED = "linked"


class ClassModel:
    """A compiled record type.

    Holds the class's own property descriptors and, once linked, the cached
    effective property set composed over its ancestors.

    Example:
        >>> base = ClassModel("Base", [Property("id", mandatory=True, nullable=False)])
        >>> child = ClassModel("Child", [Property("extra")])
        >>> child.add_parent(base)
        >>> sorted(child.effective_properties())
        ['extra', 'id']
    """

    def __init__(
        self,
        name: str,
        properties: Iterable[Property] = (),
        *,
        description: str = "",
        is_abstract: bool = False,
        is_edge: bool = False,
        embedded: bool = False,
        reverse_name: Optional[str] = None,
        source_model: Optional[str] = None,
        target_model: Optional[str] = None,
        routes: Optional[Mapping[str, bool]] = None,
        permissions: Optional[Mapping[str, int]] = None,
        indices: Iterable[IndexDefinition] = (),
        unique_non_indexed_props: Iterable[str] = (),
    ) -> None:
        if not name:
            raise SchemaDefinitionError("Class name cannot be empty")
        self.name = name
        self.description = description
        self.is_abstract = is_abstract
        self.is_edge = bool(is_edge or source_model or target_model)
        self.embedded = embedded
        self.reverse_name = reverse_name or name
        self.source_model = source_model
        self.target_model = target_model
        self.indices = tuple(indices)
        self.unique_non_indexed_props = tuple(unique_non_indexed_props)

        self._properties: dict[str, Property] = {}
        for prop in properties:
            if prop.name in self._properties:
                raise SchemaDefinitionError(
                    f"[{name}] duplicate property '{prop.name}'",
                    class_name=name,
                    property_name=prop.name,
                )
            self._properties[prop.name] = prop

        self.routes = MappingProxyType(self._build_routes(routes))
        self.permissions = MappingProxyType(self._build_permissions(permissions))

        self._parents: list[ClassModel] = []
        self._children: list[ClassModel] = []
        self._state = ModelState.DRAFT
        self._effective: Optional[Mapping[str, Property]] = None

    def __repr__(self) -> str:
        return f"ClassModel(name={self.name!r}, state={self._state.name})"

    def _build_routes(self, raw: Optional[Mapping[str, bool]]) -> dict[str, bool]:
        if self.is_abstract or self.embedded:
            routes = dict(EXPOSE_NONE)
        elif self.is_edge:
            routes = dict(EXPOSE_EDGE)
        else:
            routes = dict(EXPOSE_ALL)
        valid = {op.value for op in Operation}
        for operation, exposed in (raw or {}).items():
            if operation not in valid:
                raise SchemaDefinitionError(
                    f"[{self.name}] unknown route operation '{operation}'. Valid: {sorted(valid)}",
                    class_name=self.name,
                )
            routes[operation] = bool(exposed)
        return routes

    def _build_permissions(self, raw: Optional[Mapping[str, int]]) -> dict[str, int]:
        permissions = default_permissions(self.routes)
        for role, value in (raw or {}).items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise SchemaDefinitionError(
                    f"[{self.name}] permissions for role '{role}' must be an integer",
                    class_name=self.name,
                )
            if not PERMISSIONS.NONE <= value <= PERMISSIONS.ALL:
                raise SchemaDefinitionError(
                    f"[{self.name}] permissions for role '{role}' out of range: {value}",
                    class_name=self.name,
                )
            permissions[role] = int(value)
        permissions[READONLY_ROLE] = int(PERMISSIONS.READ)
        return permissions

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def linked(self) -> bool:
        return self._state == ModelState.LINKED

    def _ensure_mutable(self) -> None:
        if self._state == ModelState.LINKED:
            raise RegistryFrozenError(
                f"[{self.name}] cannot modify a linked class model", class_name=self.name
            )

    def add_parent(self, model: ClassModel) -> None:
        """Append a parent and register this model as its child.

        Raises:
            RegistryFrozenError: If either model is already linked
            SchemaDefinitionError: On a duplicate parent or a self-parent
        """
        self._ensure_mutable()
        model._ensure_mutable()
        if model is self:
            raise SchemaDefinitionError(
                f"[{self.name}] a class cannot inherit from itself", class_name=self.name
            )
        if any(parent is model for parent in self._parents):
            raise SchemaDefinitionError(
                f"[{self.name}] duplicate parent class {model.name}", class_name=self.name
            )
        self._parents.append(model)
        model._children.append(self)
        self._state = ModelState.LINKING

    def resolve_link(self, property_name: str, model: ClassModel) -> None:
        """Replace the linked class placeholder of a property with its model.

        A property only present through inheritance is resolved on the
        ancestor that declares it.

        Raises:
            RegistryFrozenError: If the model is already linked
            SchemaDefinitionError: If the property does not exist, has
                already been resolved, or names a different class
        """
        self._ensure_mutable()
        prop = self._properties.get(property_name)
        if prop is None:
            owner = self._declaring_ancestor(property_name)
            if owner is None:
                raise SchemaDefinitionError(
                    f"[{self.name}] cannot resolve link on undefined property {property_name}",
                    class_name=self.name,
                    property_name=property_name,
                )
            owner.resolve_link(property_name, model)
            return
        if isinstance(prop.linked_class, ClassModel):
            raise SchemaDefinitionError(
                f"[{self.name}] linked class of {property_name} is already resolved "
                f"({prop.linked_class.name})",
                class_name=self.name,
                property_name=property_name,
            )
        if prop.linked_class is not None and prop.linked_class != model.name:
            raise SchemaDefinitionError(
                f"[{self.name}] {property_name} links to {prop.linked_class}, not {model.name}",
                class_name=self.name,
                property_name=property_name,
            )
        self._properties[property_name] = prop.with_linked_class(model)
        self._state = ModelState.LINKING

    def _declaring_ancestor(self, property_name: str) -> Optional[ClassModel]:
        for parent in reversed(self._parents):
            if property_name in parent._properties:
                return parent
            owner = parent._declaring_ancestor(property_name)
            if owner is not None:
                return owner
        return None

    def freeze(self, on_conflict: Optional[ConflictHandler] = None) -> None:
        """Cache the effective properties and mark the model linked.

        Parents are frozen first. Calling freeze on a linked model is a
        no-op.

        Raises:
            SchemaDefinitionError: If a linked class is still unresolved, or
                on_conflict rejects an inheritance conflict
        """
        if self.linked:
            return
        for parent in self._parents:
            parent.freeze(on_conflict)
        effective = self._compose(on_conflict)
        for prop in effective.values():
            if not prop.is_resolved:
                raise SchemaDefinitionError(
                    f"[{self.name}] linked class {prop.linked_class} of {prop.name} was never resolved",
                    class_name=self.name,
                    property_name=prop.name,
                )
        self._effective = MappingProxyType(effective)
        self._state = ModelState.LINKED

    def _compose(self, on_conflict: Optional[ConflictHandler] = None) -> dict[str, Property]:
        merged: dict[str, Property] = {}
        contributors: dict[str, ClassModel] = {}
        for parent in self._parents:
            for name, prop in parent.effective_properties().items():
                current = merged.get(name)
                if (
                    current is not None
                    and current is not prop
                    and name not in self._properties
                    and on_conflict is not None
                ):
                    previous = contributors[name]
                    # an override along one line of ancestry is not ambiguous
                    if not (parent.is_descendant_of(previous) or previous.is_descendant_of(parent)):
                        on_conflict(self, name, current, prop)
                merged[name] = prop
                contributors[name] = parent
        merged.update(self._properties)
        return merged

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def own_properties(self) -> Mapping[str, Property]:
        return MappingProxyType(self._properties)

    @property
    def parents(self) -> tuple[ClassModel, ...]:
        return tuple(self._parents)

    @property
    def children(self) -> tuple[ClassModel, ...]:
        return tuple(self._children)

    def effective_properties(self) -> Mapping[str, Property]:
        """Own properties composed over all ancestors.

        Cached once the model is linked; computed on demand before that.
        """
        if self._effective is not None:
            return self._effective
        return MappingProxyType(self._compose())

    def inherits_property(self, property_name: str) -> bool:
        return self._declaring_ancestor(property_name) is not None

    def required(self) -> list[str]:
        """Names of mandatory effective properties."""
        return [name for name, prop in self.effective_properties().items() if prop.mandatory]

    def optional(self) -> list[str]:
        """Names of non-mandatory effective properties."""
        return [name for name, prop in self.effective_properties().items() if not prop.mandatory]

    def query_properties(self) -> dict[str, Property]:
        """Properties usable in queries: own plus those of every subclass.

        The first declaration found (self, then subclasses breadth first)
        wins.
        """
        result = dict(self.effective_properties())
        for model in self.descendant_tree()[1:]:
            for name, prop in model.effective_properties().items():
                result.setdefault(name, prop)
        return result

    def active_properties(self) -> Optional[list[str]]:
        """Properties of the ``<Name>.active`` index, if declared."""
        for index in self.indices:
            if index.name == f"{self.name}.active":
                return list(index.properties)
        return None

    # =========================================================================
    # Hierarchy
    # =========================================================================

    def is_descendant_of(self, other: Union[ClassModel, str]) -> bool:
        """Whether other (model or name) is this class or one of its ancestors."""
        target = other.name if isinstance(other, ClassModel) else other
        return self.name == target or target in self.ancestors()

    def ancestors(self) -> list[str]:
        """Ancestor names, nearest first, without duplicates."""
        result: list[str] = []
        for parent in self._parents:
            for name in [parent.name, *parent.ancestors()]:
                if name not in result:
                    result.append(name)
        return result

    def descendant_tree(self, exclude_abstract: bool = False) -> list[ClassModel]:
        """This model followed by all of its descendants, breadth first."""
        seen = {id(self)}
        result = [self]
        queue = deque(self._children)
        while queue:
            model = queue.popleft()
            if id(model) in seen:
                continue
            seen.add(id(model))
            result.append(model)
            queue.extend(model._children)
        if exclude_abstract:
            result = [model for model in result if not model.is_abstract]
        return result

    def subclass_names(self) -> list[str]:
        """Names of all descendants, breadth first."""
        return [model.name for model in self.descendant_tree()[1:]]

    def subclass_model(self, name: str) -> ClassModel:
        """Find this model or a descendant by name.

        Raises:
            UnknownClassError: If name is not this class or a descendant
        """
        for model in self.descendant_tree():
            if model.name == name:
                return model
        raise UnknownClassError(name, suggestions=[self.name])

    # =========================================================================
    # Routes and permissions
    # =========================================================================

    @property
    def expose(self) -> bool:
        """Whether any operation is exposed."""
        return any(self.routes.values())

    @property
    def route_name(self) -> str:
        """Pluralised route path for this class."""
        if len(self.name) == 1:
            return f"/{self.name.lower()}"
        if not self.is_edge and not self.name.endswith("ary") and self.name.lower() != "evidence":
            if _CONSONANT_Y.match(self.name):
                return f"/{self.name[:-1]}ies".lower()
            return f"/{self.name}s".lower()
        return f"/{self.name.lower()}"

    def permissions_for(self, role: str) -> int:
        """Bitmask for role, falling back to the default role."""
        return self.permissions.get(role, self.permissions[DEFAULT_ROLE])

    def allows(self, role: str, permission: PERMISSIONS) -> bool:
        return bool(self.permissions_for(role) & permission)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        effective = self.effective_properties()
        result: dict[str, Any] = {
            "name": self.name,
            "isAbstract": self.is_abstract,
            "isEdge": self.is_edge,
            "embedded": self.embedded,
            "inherits": [parent.name for parent in self._parents],
            "properties": {name: effective[name].to_dict() for name in sorted(effective)},
            "indices": [index.to_dict() for index in self.indices],
            "routes": dict(self.routes),
            "permissions": dict(sorted(self.permissions.items())),
        }
        if self.description:
            result["description"] = self.description
        if self.reverse_name != self.name:
            result["reverseName"] = self.reverse_name
        if self.source_model:
            result["sourceModel"] = self.source_model
        if self.target_model:
            result["targetModel"] = self.target_model
        if self.expose:
            result["route"] = self.route_name
        if self.unique_non_indexed_props:
            result["uniqueNonIndexedProps"] = list(self.unique_non_indexed_props)
        return result
