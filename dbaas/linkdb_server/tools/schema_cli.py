"""
Schema CLI tool for LinkDB.

This tool inspects the schema and its reference graph:
- snapshot: Export the current schema to JSON
- check: Compare the current schema with a baseline snapshot
- validate: Check a schema for unknown targets, cycles and depth
- cascade: Show which entity types a delete of TYPE reaches

Usage:
    linkdb-schema snapshot > schema.lock.json
    linkdb-schema check --baseline schema.lock.json
    linkdb-schema validate --file schema.lock.json
    linkdb-schema cascade user

Invariants:
    - Failing checks cause a non-zero exit code
    - Snapshot output is deterministic (sorted JSON)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Sequence

from ..schema import SchemaRegistry, SchemaValidationError, build_registry

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI tool for schema inspection.

    Example:
        >>> cli = SchemaCLI()
        >>> print(cli.snapshot(build_registry()))
        >>> print("\\n".join(cli.cascade_tree(build_registry(), "user")))
    """

    def snapshot(self, registry: SchemaRegistry) -> str:
        """Export schema to JSON."""
        output = {
            "version": 1,
            "fingerprint": registry.fingerprint or "unfrozen",
            "schema": registry.to_dict(),
        }
        return json.dumps(output, indent=2, sort_keys=True)

    def check(
        self,
        registry: SchemaRegistry,
        baseline_path: str,
    ) -> tuple[bool, list[str]]:
        """Compare registry with a baseline snapshot.

        Returns:
            Tuple of (matches, list_of_differences)
        """
        with open(baseline_path) as f:
            baseline_data = json.load(f)

        schema_data = baseline_data.get("schema", baseline_data)
        baseline = SchemaRegistry.from_dict(schema_data)

        issues: list[str] = []
        old_names = set(baseline.type_names())
        new_names = set(registry.type_names())
        for name in sorted(old_names - new_names):
            issues.append(f"Entity type '{name}' was removed")
        for name in sorted(new_names - old_names):
            issues.append(f"Entity type '{name}' was added")
        for name in sorted(old_names & new_names):
            old_type = baseline.get_entity_type(name)
            new_type = registry.get_entity_type(name)
            if old_type.to_dict() != new_type.to_dict():
                issues.append(f"Entity type '{name}' changed")

        return len(issues) == 0, issues

    def validate(self, registry: SchemaRegistry) -> list[str]:
        """Validate schema for internal consistency."""
        return registry.validate_all()

    def cascade_tree(self, registry: SchemaRegistry, type_name: str) -> List[str]:
        """Render the dependent types reached by deleting type_name.

        Raises:
            ValueError: If type_name is not registered
        """
        if type_name not in registry:
            raise ValueError(f"Unknown entity type '{type_name}'")

        lines = [type_name]

        def walk(name: str, depth: int) -> None:
            for dependent, field_name in registry.dependent_types(name):
                lines.append(f"{'  ' * depth}{dependent} (via {field_name})")
                walk(dependent, depth + 1)

        walk(type_name, 1)
        return lines


def _load_registry(path: Optional[str]) -> SchemaRegistry:
    """Load a registry from a snapshot file, or the built-in schema."""
    if not path:
        return build_registry()
    with open(path) as f:
        data = json.load(f)
    return SchemaRegistry.from_dict(data.get("schema", data))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for schema tool."""
    parser = argparse.ArgumentParser(description="LinkDB schema tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    snapshot_parser = subparsers.add_parser("snapshot", help="Export schema to JSON")
    snapshot_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    check_parser = subparsers.add_parser("check", help="Compare with a baseline snapshot")
    check_parser.add_argument(
        "--baseline", "-b", required=True, help="Path to baseline schema JSON"
    )

    validate_parser = subparsers.add_parser("validate", help="Validate schema for consistency")
    validate_parser.add_argument("--file", help="Schema JSON file to validate")

    cascade_parser = subparsers.add_parser("cascade", help="Show cascade reach of a type")
    cascade_parser.add_argument("type", help="Entity type name")
    cascade_parser.add_argument("--file", help="Schema JSON file (default: built-in)")

    args = parser.parse_args(argv)
    cli = SchemaCLI()

    if args.command == "snapshot":
        output = cli.snapshot(build_registry())
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Schema exported to {args.output}", file=sys.stderr)
        else:
            print(output)
        return 0

    if args.command == "check":
        matches, issues = cli.check(build_registry(), args.baseline)
        if matches:
            print("Schema matches baseline")
            return 0
        print(f"Schema differs from baseline in {len(issues)} place(s):")
        for issue in issues:
            print(f"  - {issue}")
        return 1

    if args.command == "validate":
        errors = cli.validate(_load_registry(args.file))
        if not errors:
            print("Schema is valid")
            return 0
        print(f"Schema validation failed with {len(errors)} error(s):")
        for error in errors:
            print(f"  - {error}")
        return 1

    # cascade
    registry = _load_registry(args.file)
    try:
        errors = registry.validate_all()
        if errors:
            raise SchemaValidationError(errors)
        lines = cli.cascade_tree(registry, args.type)
    except (ValueError, SchemaValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print("\n".join(lines))
    return 0


if __name__ == "__main__":
    sys.exit(main())
