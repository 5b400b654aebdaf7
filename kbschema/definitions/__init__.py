"""
Built-in class catalog.

The catalog is configuration data: raw definition sets which are compiled by
kbschema.schema.compile_schema. get_registry() compiles them once per
process and shares the result.

Example:
    >>> from kbschema.definitions import get_registry
    >>> get_registry().get("therapy").route_name
    '/therapies'
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from ..schema.registry import SchemaRegistry, compile_schema
from . import base, edges, ontology, user

logger = logging.getLogger(__name__)

DEFINITION_SETS: tuple[dict[str, dict[str, Any]], ...] = (
    base.DEFINITIONS,
    user.DEFINITIONS,
    edges.DEFINITIONS,
    ontology.DEFINITIONS,
)

# Global registry instance
_global_registry: Optional[SchemaRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> SchemaRegistry:
    """Get the registry compiled from the built-in catalog.

    Compiled on first use; later calls return the same instance.

    Returns:
        Global SchemaRegistry instance
    """
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            logger.debug("Compiling built-in catalog")
            _global_registry = compile_schema(DEFINITION_SETS)
        return _global_registry


def reset_registry() -> None:
    """Reset the global registry (for testing only).

    Warning: This is intended for test cleanup only.
    Never use in production code.
    """
    global _global_registry
    with _registry_lock:
        _global_registry = None
