"""
Property descriptors for the schema compiler.

This module defines the descriptor for a single field of a class:
- PropertyType: The closed set of storage types
- Property: Immutable descriptor (type, cast, constraints, defaults)

Invariants:
    - Descriptors are immutable; linking produces a new descriptor
    - Construction never executes cast, check or default functions
    - indexed / fulltext_indexed are derived by the registry, never read
      from a raw definition
    - linked_class is only allowed on link and embedded types

How to change safely:
    - New raw keys must be added to _TYPE_KEYS for every type accepting them
    - New property types need a default cast decision in _default_cast

Example:
    >>> name = Property.from_dict({"name": "name", "mandatory": True, "nullable": False})
    >>> name.type
    <PropertyType.STRING: 'string'>
    >>> name.validate("  Breast   Cancer ")
    ('breast cancer', [])
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..errors import AttributeFailure, CastError, FailureKind, SchemaDefinitionError, ValidationError
from . import util

if TYPE_CHECKING:
    from .model import ClassModel


class PropertyType(Enum):
    """Supported storage types for a property."""

    STRING = "string"
    INTEGER = "integer"
    LONG = "long"
    BOOLEAN = "boolean"
    LINK = "link"
    LINKSET = "linkset"
    EMBEDDED = "embedded"
    EMBEDDEDLIST = "embeddedlist"
    EMBEDDEDSET = "embeddedset"

    @classmethod
    def from_str(cls, value: str) -> PropertyType:
        """Convert string representation to PropertyType.

        Raises:
            ValueError: If value is not a valid property type
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid property type '{value}'. Valid types: {valid}")

    @property
    def iterable(self) -> bool:
        return self in (PropertyType.LINKSET, PropertyType.EMBEDDEDLIST, PropertyType.EMBEDDEDSET)

    @property
    def is_link(self) -> bool:
        return self in (PropertyType.LINK, PropertyType.LINKSET)

    @property
    def is_embedded(self) -> bool:
        return self in (PropertyType.EMBEDDED, PropertyType.EMBEDDEDLIST, PropertyType.EMBEDDEDSET)


class _NoDefault:
    """Marker for a property without a constant default."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()

_COMMON_KEYS = frozenset(
    {
        "name",
        "type",
        "description",
        "example",
        "examples",
        "mandatory",
        "nullable",
        "generated",
        "generationDependencies",
        "readOnly",
        "default",
        "cast",
        "check",
        "choices",
        "pattern",
        "format",
    }
)
_LINK_KEYS = frozenset({"linkedClass"})
_ITEM_KEYS = frozenset({"minItems", "maxItems"})
_BOUND_KEYS = frozenset({"min", "max"})

# The accepted raw shape of each property type
_TYPE_KEYS: dict[PropertyType, frozenset[str]] = {
    PropertyType.STRING: _COMMON_KEYS | {"nonEmpty"},
    PropertyType.INTEGER: _COMMON_KEYS | _BOUND_KEYS,
    PropertyType.LONG: _COMMON_KEYS | _BOUND_KEYS,
    PropertyType.BOOLEAN: _COMMON_KEYS,
    PropertyType.LINK: _COMMON_KEYS | _LINK_KEYS,
    PropertyType.LINKSET: _COMMON_KEYS | _LINK_KEYS | _ITEM_KEYS,
    PropertyType.EMBEDDED: _COMMON_KEYS | _LINK_KEYS,
    PropertyType.EMBEDDEDLIST: _COMMON_KEYS | _LINK_KEYS | _ITEM_KEYS | _BOUND_KEYS
    | {"linkedType", "nonEmpty"},
    PropertyType.EMBEDDEDSET: _COMMON_KEYS | _LINK_KEYS | _ITEM_KEYS | _BOUND_KEYS
    | {"linkedType", "nonEmpty"},
}


def _default_cast(
    prop_type: PropertyType, nullable: bool, non_empty: bool
) -> Optional[Callable[[Any], Any]]:
    if prop_type in (PropertyType.INTEGER, PropertyType.LONG):
        return util.cast_integer
    if prop_type == PropertyType.BOOLEAN:
        return util.cast_boolean
    if prop_type == PropertyType.STRING:
        if nullable:
            return (
                util.cast_lowercase_non_empty_nullable_string
                if non_empty
                else util.cast_lowercase_nullable_string
            )
        return util.cast_lowercase_non_empty_string if non_empty else util.cast_lowercase_string
    if prop_type.is_link:
        return util.cast_nullable_link if nullable else util.cast_to_rid
    return None


def _function_name(func: Optional[Callable[..., Any]]) -> Optional[str]:
    if func is None:
        return None
    return getattr(func, "__name__", type(func).__name__)


@dataclass(frozen=True)
class Property:
    """Definition of a single property of a class.

    Attributes:
        name: Property name (unique within the class's effective properties)
        type: Storage type
        cast: Function producing the canonical stored value (per element for
            iterable types)
        description: Human-readable description
        example: Example value used for help text
        examples: Further example values
        generated: Value is produced by the system, not accepted as input
        generation_dependencies: Generate only after all other properties
            have been processed, because the default reads them
        linked_class: Class this property links to or embeds; the class name
            until linking, the ClassModel afterwards
        linked_type: Element type for embedded lists of scalars
        format: Documentation hint for string formats (e.g. "date")
        mandatory: Must be present on create
        nullable: May hold None
        non_empty: Empty string is rejected
        read_only: Cannot be given when updating an existing record
        choices: Closed set of allowed values
        pattern: Regular expression values must match
        min: Lower bound for numeric values
        max: Upper bound for numeric values
        min_items: Minimum number of elements for iterable types
        max_items: Maximum number of elements for iterable types
        check: Extra predicate values must satisfy
        default: Constant default (NO_DEFAULT when absent)
        generate_default: Callable default, given a read-only view of the
            partially built record
        indexed: Target of a single-property hash index on its class
        fulltext_indexed: Target of a single-property full text index

    Invariants:
        - linked_class is None for scalar types
        - At most one of default / generate_default is set
    """

    name: str
    type: PropertyType = PropertyType.STRING
    cast: Optional[Callable[[Any], Any]] = None
    description: str = ""
    example: Any = None
    examples: tuple[Any, ...] = ()
    generated: bool = False
    generation_dependencies: bool = False
    linked_class: Union[str, ClassModel, None] = None
    linked_type: Optional[str] = None
    format: Optional[str] = None
    mandatory: bool = False
    nullable: bool = True
    non_empty: bool = False
    read_only: bool = False
    choices: Optional[tuple[Any, ...]] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    check: Optional[Callable[[Any], bool]] = None
    default: Any = NO_DEFAULT
    generate_default: Optional[Callable[[Mapping[str, Any]], Any]] = None
    indexed: bool = False
    fulltext_indexed: bool = False

    def __post_init__(self) -> None:
        """Validate the descriptor and fill in the default cast."""
        if not self.name:
            raise SchemaDefinitionError("Property name cannot be empty")
        if self.linked_class is not None and not (self.type.is_link or self.type.is_embedded):
            raise SchemaDefinitionError(
                f"Property '{self.name}' of type {self.type.value} cannot have a linked class",
                property_name=self.name,
            )
        if self.default is not NO_DEFAULT and self.generate_default is not None:
            raise SchemaDefinitionError(
                f"Property '{self.name}' cannot have both a default value and a default function",
                property_name=self.name,
            )
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as err:
                raise SchemaDefinitionError(
                    f"Property '{self.name}' has an invalid pattern: {err}",
                    property_name=self.name,
                ) from err
        if self.cast is None:
            object.__setattr__(
                self, "cast", _default_cast(self.type, self.nullable, self.non_empty)
            )
        if self.example is None and self.choices:
            object.__setattr__(self, "example", self.choices[0])

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        indexed: bool = False,
        fulltext_indexed: bool = False,
    ) -> Property:
        """Create from a raw property definition.

        Each property type accepts a fixed set of keys; anything else is a
        definition error. A missing type is integer when min/max are given
        and string otherwise.

        Args:
            data: Raw definition using camelCase keys
            indexed: Derived hash-index flag
            fulltext_indexed: Derived full text index flag

        Raises:
            SchemaDefinitionError: If the definition is malformed
        """
        if not isinstance(data, Mapping):
            raise SchemaDefinitionError(f"Property definition must be a mapping, got {data!r}")
        name = data.get("name")
        if not name or not isinstance(name, str):
            raise SchemaDefinitionError(f"Property name is required, got {name!r}")

        raw_type = data.get("type")
        if raw_type is None:
            raw_type = "integer" if ("min" in data or "max" in data) else "string"
        try:
            prop_type = raw_type if isinstance(raw_type, PropertyType) else PropertyType.from_str(raw_type)
        except ValueError as err:
            raise SchemaDefinitionError(str(err), property_name=name) from err

        unexpected = set(data) - _TYPE_KEYS[prop_type]
        if unexpected:
            raise SchemaDefinitionError(
                f"Property '{name}' of type {prop_type.value} does not accept: {sorted(unexpected)}",
                property_name=name,
            )

        for key in ("cast", "check"):
            if data.get(key) is not None and not callable(data[key]):
                raise SchemaDefinitionError(
                    f"Property '{name}': {key} must be callable", property_name=name
                )

        default = data.get("default", NO_DEFAULT)
        generate_default = None
        if callable(default):
            generate_default, default = default, NO_DEFAULT

        choices = data.get("choices")
        return cls(
            name=name,
            type=prop_type,
            cast=data.get("cast"),
            description=data.get("description") or "",
            example=data.get("example"),
            examples=tuple(data.get("examples") or ()),
            generated=bool(data.get("generated", False)),
            generation_dependencies=bool(data.get("generationDependencies", False)),
            linked_class=data.get("linkedClass"),
            linked_type=data.get("linkedType"),
            format=data.get("format"),
            mandatory=bool(data.get("mandatory", False)),
            nullable=bool(data.get("nullable", True)),
            non_empty=bool(data.get("nonEmpty", False)),
            read_only=bool(data.get("readOnly", False)),
            choices=tuple(choices) if choices is not None else None,
            pattern=data.get("pattern"),
            min=data.get("min"),
            max=data.get("max"),
            min_items=data.get("minItems"),
            max_items=data.get("maxItems"),
            check=data.get("check"),
            default=default,
            generate_default=generate_default,
            indexed=indexed,
            fulltext_indexed=fulltext_indexed,
        )

    @property
    def iterable(self) -> bool:
        """Whether the property holds a collection of values."""
        return self.type.iterable

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT or self.generate_default is not None

    @property
    def linked_class_name(self) -> Optional[str]:
        """Name of the linked class, before or after linking."""
        if self.linked_class is None or isinstance(self.linked_class, str):
            return self.linked_class
        return self.linked_class.name

    @property
    def is_resolved(self) -> bool:
        """Whether linked_class (if any) has been replaced by a ClassModel."""
        return not isinstance(self.linked_class, str)

    def with_linked_class(self, model: ClassModel) -> Property:
        """Copy of this descriptor with the linked class resolved."""
        return replace(self, linked_class=model)

    def default_value(self, record: Mapping[str, Any]) -> Any:
        """Produce the default for this property.

        Args:
            record: Read-only view of the partially built record

        Returns:
            The generated or constant default (constants are copied)
        """
        if self.generate_default is not None:
            return self.generate_default(record)
        return copy.deepcopy(self.default)

    def validate(self, value: Any, path: Optional[str] = None) -> tuple[Any, list[AttributeFailure]]:
        """Cast a value and check it against this descriptor's constraints.

        Every violated constraint is reported; a value whose cast fails is
        not checked further.

        Args:
            value: The raw input value
            path: Attribute path used in failure messages (defaults to name)

        Returns:
            Tuple of (cast_value, list_of_failures)
        """
        path = path or self.name
        failures: list[AttributeFailure] = []

        def fail(kind: FailureKind, bad_value: Any, message: str) -> None:
            failures.append(AttributeFailure(kind, path, bad_value, message))

        if value is None:
            if not self.nullable:
                fail(FailureKind.NULL, value, f"The {path} property cannot be null")
            return None, failures

        is_collection = isinstance(value, (list, tuple, set, frozenset))
        if is_collection and not self.iterable:
            fail(
                FailureKind.NOT_ITERABLE,
                value,
                f"The {path} property is not iterable but has been given multiple values",
            )
            return value, failures

        values = list(value) if is_collection else [value]
        result: list[Any] = []

        for item in values:
            if item is None:
                if not self.nullable:
                    fail(FailureKind.NULL, item, f"The {path} property cannot be null")
                result.append(None)
                continue

            cast_value = item
            if self.cast is not None:
                try:
                    cast_value = self.cast(item)
                except CastError as err:
                    fail(FailureKind.CAST, item, f"Failed casting {path}: {err.message}")
                    continue
                except (ValueError, TypeError) as err:
                    fail(FailureKind.CAST, item, f"Failed casting {path}: {err}")
                    continue
            result.append(cast_value)
            if cast_value is None:
                continue

            if self.non_empty and cast_value == "":
                fail(FailureKind.EMPTY, item, f"The {path} property cannot be an empty string")
            if _is_number(cast_value):
                if self.min is not None and cast_value < self.min:
                    fail(
                        FailureKind.MIN,
                        cast_value,
                        f"Violated the minimum value constraint of {path} ({cast_value} < {self.min})",
                    )
                if self.max is not None and cast_value > self.max:
                    fail(
                        FailureKind.MAX,
                        cast_value,
                        f"Violated the maximum value constraint of {path} ({cast_value} > {self.max})",
                    )
            if self.pattern is not None and not re.search(self.pattern, str(cast_value)):
                fail(
                    FailureKind.PATTERN,
                    cast_value,
                    f"Violated the pattern constraint of {path}. {cast_value} does not match "
                    f"the expected pattern {self.pattern}",
                )
            if self.choices is not None and cast_value not in self.choices:
                fail(
                    FailureKind.CHOICES,
                    cast_value,
                    f"Violated the choices constraint of {path}. {cast_value} is not one of "
                    f"the expected values [{', '.join(str(c) for c in self.choices)}]",
                )
            if self.check is not None and not self.check(cast_value):
                check_name = _function_name(self.check)
                suffix = f" ({check_name})" if check_name and check_name != "<lambda>" else ""
                fail(FailureKind.CHECK, cast_value, f"Violated check constraint of {path}{suffix}")

        if self.iterable:
            if self.min_items is not None and len(values) < self.min_items:
                fail(
                    FailureKind.MIN_ITEMS,
                    value,
                    f"Violated the minItems constraint of {path}. Less than the required number "
                    f"of elements ({len(values)} < {self.min_items})",
                )
            if self.max_items is not None and len(values) > self.max_items:
                fail(
                    FailureKind.MAX_ITEMS,
                    value,
                    f"Violated the maxItems constraint of {path}. More than the allowed number "
                    f"of elements ({len(values)} > {self.max_items})",
                )
            return result, failures

        return (result[0] if result else value), failures

    def validate_or_raise(self, value: Any) -> Any:
        """Validate a single value, raising with every failure found.

        Raises:
            ValidationError: If the value violates any constraint
        """
        cast_value, failures = self.validate(value)
        if failures:
            raise ValidationError(
                "; ".join(f.message for f in failures), failures=failures
            )
        return cast_value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "mandatory": self.mandatory,
            "nullable": self.nullable,
        }
        if self.description:
            result["description"] = self.description
        if self.linked_class is not None:
            result["linkedClass"] = self.linked_class_name
        if self.linked_type:
            result["linkedType"] = self.linked_type
        if self.cast is not None:
            result["cast"] = _function_name(self.cast)
        if self.check is not None:
            result["check"] = _function_name(self.check)
        if self.generated:
            result["generated"] = True
        if self.generation_dependencies:
            result["generationDependencies"] = True
        if self.non_empty:
            result["nonEmpty"] = True
        if self.read_only:
            result["readOnly"] = True
        if self.iterable:
            result["iterable"] = True
        if self.choices is not None:
            result["choices"] = list(self.choices)
        if self.example is not None:
            result["example"] = self.example
        if self.examples:
            result["examples"] = list(self.examples)
        if self.format:
            result["format"] = self.format
        for key, bound in (
            ("pattern", self.pattern),
            ("min", self.min),
            ("max", self.max),
            ("minItems", self.min_items),
            ("maxItems", self.max_items),
        ):
            if bound is not None:
                result[key] = bound
        if self.default is not NO_DEFAULT:
            result["default"] = self.default
        if self.generate_default is not None:
            result["generateDefault"] = _function_name(self.generate_default)
        if self.indexed:
            result["indexed"] = True
        if self.fulltext_indexed:
            result["fulltextIndexed"] = True
        return result


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = ["NO_DEFAULT", "Property", "PropertyType"]
