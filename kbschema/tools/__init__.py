"""
CLI tools for kbschema.

This module provides command-line tools for:
- schema: Compile, snapshot and inspect class definitions

Invariants:
    - Tools work offline on definition files
"""

from .schema_cli import SchemaCLI

__all__ = ["SchemaCLI"]
