"""
Schema module for kbschema.

This module provides the metamodel compiler, including:
- Property descriptors (Property, PropertyType)
- Class models (ClassModel, IndexDefinition)
- The registry / linker (compile_schema, SchemaRegistry)
- Record validation (validate_record, format_record)
- Definition file loading

Invariants:
    - Class names are unique across all definition sets
    - A compiled registry and its models are never modified
    - Every linked_class in a compiled registry is a ClassModel of the
      same registry

How to change safely:
    - Add new classes as data (definition sets), not code
    - Compare fingerprints (kbschema snapshot) before and after changes
"""

from .constants import (
    EXPOSE_ALL,
    EXPOSE_EDGE,
    EXPOSE_NONE,
    EXPOSE_READ,
    PERMISSIONS,
    Operation,
)
from .loader import load_file, load_files, parse_json, parse_yaml
from .model import ClassModel, IndexDefinition, IndexKind, ModelState
from .property import NO_DEFAULT, Property, PropertyType
from .registry import SchemaRegistry, compile_schema, merge_definitions
from .util import RecordId, cast_to_rid, looks_like_rid
from .validate import format_record, validate_record

__all__ = [
    # Constants
    "PERMISSIONS",
    "Operation",
    "EXPOSE_ALL",
    "EXPOSE_EDGE",
    "EXPOSE_NONE",
    "EXPOSE_READ",
    # Properties
    "Property",
    "PropertyType",
    "NO_DEFAULT",
    # Models
    "ClassModel",
    "IndexDefinition",
    "IndexKind",
    "ModelState",
    # Registry
    "SchemaRegistry",
    "compile_schema",
    "merge_definitions",
    # Validation
    "validate_record",
    "format_record",
    # Records
    "RecordId",
    "cast_to_rid",
    "looks_like_rid",
    # Files
    "load_file",
    "load_files",
    "parse_yaml",
    "parse_json",
]
