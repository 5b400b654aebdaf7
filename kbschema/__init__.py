"""
kbschema - Metamodel compiler for knowledge base record classes.

This package turns declarative class definitions into a linked, queryable
object model used to validate, cast and authorize records:
- Property descriptors (Property, PropertyType)
- Class models with composed inheritance (ClassModel)
- The registry / linker (compile_schema, SchemaRegistry)
- Record validation (validate_record, format_record)

Example:
    >>> from kbschema import compile_schema
    >>>
    >>> registry = compile_schema({
    ...     "Base": {"properties": [{"name": "id", "mandatory": True, "nullable": False}]},
    ...     "Child": {"inherits": ["Base"], "properties": [{"name": "extra"}]},
    ... })
    >>> record, failures = registry.validate_record("Child", {"extra": "x"})
    >>> [f.message for f in failures]
    ['[Child] missing required attribute id']

Invariants:
    - Class names are unique across all definition sets
    - A compiled registry is immutable and safe to share between threads
    - Validation reports every failure of a record, not just the first

Version: 1.0.0
"""

__version__ = "1.0.0"

from .errors import (
    AttributeFailure,
    CastError,
    FailureKind,
    KbSchemaError,
    RegistryFrozenError,
    SchemaDefinitionError,
    UnknownClassError,
    ValidationError,
)
from .schema import (
    PERMISSIONS,
    ClassModel,
    IndexDefinition,
    IndexKind,
    Property,
    PropertyType,
    RecordId,
    SchemaRegistry,
    compile_schema,
    format_record,
    merge_definitions,
    validate_record,
)

__all__ = [
    # Errors
    "KbSchemaError",
    "SchemaDefinitionError",
    "RegistryFrozenError",
    "UnknownClassError",
    "CastError",
    "ValidationError",
    "AttributeFailure",
    "FailureKind",
    # Schema
    "Property",
    "PropertyType",
    "ClassModel",
    "IndexDefinition",
    "IndexKind",
    "SchemaRegistry",
    "compile_schema",
    "merge_definitions",
    "validate_record",
    "format_record",
    "RecordId",
    "PERMISSIONS",
]
