"""
Error types for kbschema.

This module defines all exception types raised by the compiler and the
validation entry point:
- KbSchemaError: Base exception
- SchemaDefinitionError: Raw definitions cannot be compiled (fatal)
- RegistryFrozenError: Linking operation attempted on a linked model
- UnknownClassError: Registry lookup for a class that does not exist
- CastError: A cast function rejected its input
- ValidationError: One or more attribute failures on a record

Invariants:
    - All errors inherit from KbSchemaError
    - Errors include context for debugging
    - Record failures carry the property name and rejected value only,
      never the full record
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class KbSchemaError(Exception):
    """Base exception for all kbschema errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "KBSCHEMA_ERROR"
        self.details = details or {}


class SchemaDefinitionError(KbSchemaError):
    """The raw class definitions are invalid.

    Raised when:
    - Two definition sets declare the same class
    - A parent, linked class or edge endpoint is not defined
    - An index targets a property the class does not have
    - Inheritance is circular
    - A raw property or class definition is malformed
    """

    def __init__(
        self,
        message: str,
        class_name: Optional[str] = None,
        property_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="DEFINITION_ERROR",
            details={"class_name": class_name, "property_name": property_name},
        )
        self.class_name = class_name
        self.property_name = property_name


class RegistryFrozenError(KbSchemaError):
    """A linking operation was attempted after the model was frozen."""

    def __init__(self, message: str, class_name: Optional[str] = None) -> None:
        super().__init__(message, code="REGISTRY_FROZEN", details={"class_name": class_name})
        self.class_name = class_name


class UnknownClassError(KbSchemaError):
    """Class not found in the registry.

    Includes suggestions for similar class names.

    Attributes:
        class_name: The requested name
        suggestions: Similar class names
    """

    def __init__(self, class_name: str, suggestions: Optional[List[str]] = None) -> None:
        suggestions = suggestions or []
        msg = f"Unable to retrieve model: {class_name}"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_CLASS",
            details={"class_name": class_name, "suggestions": suggestions},
        )
        self.class_name = class_name
        self.suggestions = suggestions


class CastError(KbSchemaError):
    """A value could not be cast to the expected type."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message, code="CAST_ERROR", details={"value": value})
        self.value = value


class FailureKind(Enum):
    """Kinds of per-attribute validation failures."""

    CAST = "cast"
    MISSING = "missing"
    NULL = "null"
    EMPTY = "empty"
    CHOICES = "choices"
    PATTERN = "pattern"
    MIN = "min"
    MAX = "max"
    MIN_ITEMS = "min_items"
    MAX_ITEMS = "max_items"
    CHECK = "check"
    NOT_ITERABLE = "not_iterable"
    READ_ONLY = "read_only"
    UNEXPECTED = "unexpected"
    LINKED_CLASS = "linked_class"
    DEFAULT = "default"


@dataclass(frozen=True)
class AttributeFailure:
    """A single problem with one attribute of a record.

    Attributes:
        kind: What went wrong
        property_name: Dotted path of the offending attribute
        value: The rejected value
        message: Human-readable explanation
    """

    kind: FailureKind
    property_name: str
    value: Any
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "property": self.property_name,
            "value": repr(self.value),
            "message": self.message,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(KbSchemaError):
    """Record validation failed.

    Raised when:
    - Required attribute is missing
    - Attribute value cannot be cast
    - Attribute value violates a constraint

    All failures for the record are collected in ``failures``.
    """

    def __init__(
        self,
        message: str,
        class_name: Optional[str] = None,
        failures: Optional[List[AttributeFailure]] = None,
    ) -> None:
        failures = failures or []
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={
                "class_name": class_name,
                "failures": [f.to_dict() for f in failures],
            },
        )
        self.class_name = class_name
        self.failures = failures

    @property
    def errors(self) -> List[str]:
        """Failure messages in report order."""
        return [f.message for f in self.failures]
