"""
Schema CLI tool for kbschema.

This tool compiles and inspects class definitions:
- validate: Compile definitions and report the first definition error
- snapshot: Export the compiled registry (with fingerprint) to JSON
- levels: Print the order in which classes must be created
- check-record: Validate a JSON record against a class
- cast-rid: Print the canonical form of a record identifier

Usage:
    kbschema validate --file defs/ontology.yaml --file defs/edges.yaml
    kbschema snapshot -o schema.lock.json
    kbschema check-record --class Disease record.json

Without --file, definition files come from KBSCHEMA_DEFINITION_PATHS, or the
built-in catalog when that is empty.

Invariants:
    - Definition errors cause exit code 1
    - Snapshots are deterministic (sorted JSON)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from ..config import Settings, configure_logging
from ..errors import CastError, KbSchemaError, SchemaDefinitionError
from ..schema import SchemaRegistry, compile_schema, load_files
from ..schema.util import cast_to_rid

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI tool for schema management.

    Example:
        >>> cli = SchemaCLI(Settings())
        >>> registry = cli.load_registry()
        >>> print(cli.snapshot(registry))
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def load_registry(self, files: Optional[Sequence[str]] = None) -> SchemaRegistry:
        """Compile the given files, the configured files, or the built-in catalog.

        Raises:
            SchemaDefinitionError: If the definitions cannot be compiled
        """
        paths = list(files or self.settings.definition_paths)
        if paths:
            logger.info(f"Compiling definitions from {len(paths)} file(s)")
            return compile_schema(
                load_files(paths), inheritance_conflicts=self.settings.inheritance_conflicts
            )

        from ..definitions import DEFINITION_SETS

        return compile_schema(
            DEFINITION_SETS, inheritance_conflicts=self.settings.inheritance_conflicts
        )

    def snapshot(self, registry: SchemaRegistry) -> str:
        """Export schema to JSON.

        Args:
            registry: Compiled registry to export

        Returns:
            JSON string representation
        """
        output = {
            "version": 1,
            "fingerprint": registry.fingerprint,
            "schema": registry.to_dict(),
        }
        return json.dumps(output, indent=2, sort_keys=True, default=str)

    def levels(self, registry: SchemaRegistry) -> list[list[str]]:
        return registry.split_class_levels()

    def check_record(
        self,
        registry: SchemaRegistry,
        class_name: str,
        record: dict[str, Any],
        is_update: bool = False,
    ) -> tuple[dict[str, Any], list[str]]:
        """Validate a record against a class.

        Returns:
            Tuple of (formatted_record, list_of_failure_messages)
        """
        formatted, failures = registry.validate_record(
            class_name,
            record,
            is_update=is_update,
            ignore_missing=is_update,
            drop_extra=False,
        )
        return formatted, [failure.message for failure in failures]

    def cast_rid(self, value: str) -> str:
        """Canonical form of a record identifier.

        Raises:
            CastError: If value is not a record identifier
        """
        return str(cast_to_rid(value, require_hash=self.settings.require_rid_hash))


def _add_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--file",
        "-f",
        action="append",
        default=[],
        help="YAML or JSON definition file (repeatable)",
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for schema tool."""
    parser = argparse.ArgumentParser(description="kbschema metamodel compiler")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Compile definitions and report errors")
    _add_file_argument(validate_parser)

    # snapshot command
    snapshot_parser = subparsers.add_parser("snapshot", help="Export compiled schema to JSON")
    _add_file_argument(snapshot_parser)
    snapshot_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # levels command
    levels_parser = subparsers.add_parser("levels", help="Print class creation levels")
    _add_file_argument(levels_parser)

    # check-record command
    record_parser = subparsers.add_parser("check-record", help="Validate a JSON record")
    _add_file_argument(record_parser)
    record_parser.add_argument("--class", dest="class_name", required=True, help="Class name")
    record_parser.add_argument("--update", action="store_true", help="Validate as an update")
    record_parser.add_argument("record", help="Path to a JSON file holding one record")

    # cast-rid command
    rid_parser = subparsers.add_parser("cast-rid", help="Print a canonical record identifier")
    rid_parser.add_argument("value", help="Record identifier, e.g. #4:10")

    args = parser.parse_args(argv)
    settings = Settings()
    configure_logging(settings)
    cli = SchemaCLI(settings)

    if args.command == "cast-rid":
        try:
            print(cli.cast_rid(args.value))
        except CastError as err:
            print(f"Invalid record identifier: {err.message}")
            sys.exit(1)
        sys.exit(0)

    try:
        registry = cli.load_registry(args.file)
    except (SchemaDefinitionError, OSError) as err:
        print(f"Schema definitions are invalid: {err}")
        sys.exit(1)

    if args.command == "validate":
        print(f"Schema is valid ({len(registry)} classes, fingerprint={registry.fingerprint})")
        sys.exit(0)

    elif args.command == "snapshot":
        output = cli.snapshot(registry)
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Schema exported to {args.output}", file=sys.stderr)
        else:
            print(output)

    elif args.command == "levels":
        for level, names in enumerate(cli.levels(registry)):
            print(f"{level}: {', '.join(names)}")

    elif args.command == "check-record":
        with open(args.record) as f:
            record = json.load(f)
        try:
            formatted, errors = cli.check_record(registry, args.class_name, record, args.update)
        except KbSchemaError as err:
            print(err.message)
            sys.exit(1)

        if not errors:
            print(json.dumps(formatted, indent=2, sort_keys=True, default=str))
            sys.exit(0)
        else:
            print(f"Record validation failed with {len(errors)} error(s):")
            for error in errors:
                print(f"  - {error}")
            sys.exit(1)


if __name__ == "__main__":
    main()
