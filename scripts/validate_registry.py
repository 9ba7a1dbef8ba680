#!/usr/bin/env python3
"""
Validate that every identifier in the registered tables is in the registry.

Usage:
    python scripts/validate_registry.py --db data/idregistry.db --tables config/tables.json
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from idregistry.config import load_table_descriptors
from idregistry.database import get_session
from idregistry.errors import IdRegistryError
from idregistry.identifiers import to_canonical_string
from idregistry.registry import RegistryStore


def validate(db: str, tables_path: Path, limit: int = 5) -> bool:
    """
    Report unregistered identifiers and rows still missing one.

    Returns True if every table is fully labeled and registered.
    """
    descriptors = load_table_descriptors(tables_path)
    print(f"Checking {len(descriptors)} tables in {db}...")

    session = get_session(db)
    problems = 0
    try:
        store = RegistryStore(session)
        for descriptor in descriptors:
            table = descriptor.table_name
            try:
                missing = store.count_missing(table, descriptor.id_column_name, descriptor.identifier_column_name)
                unregistered = [] if descriptor.tracking_disabled else store.find_unregistered(descriptor, limit=limit + 1)
            except IdRegistryError as e:
                print(f"❌ {table}: {e}")
                problems += 1
                continue

            if not missing and not unregistered:
                print(f"✅ {table}")
                continue

            problems += 1
            if missing:
                print(f"❌ {table}: {missing} rows missing an identifier")
            if unregistered:
                shown = unregistered[:limit]
                more = " (and more)" if len(unregistered) > limit else ""
                print(f"❌ {table}: {len(shown)} unregistered identifiers{more}")
                for identifier in shown:
                    print(f"   - {to_canonical_string(identifier)}")
    finally:
        session.close()

    if problems:
        print(f"\n❌ {problems} tables need attention")
        return False
    print("\n✅ All tables validated successfully!")
    return True


def main():
    parser = argparse.ArgumentParser(description="Validate identifier registry coverage")
    parser.add_argument("--db", default="data/idregistry.db",
                       help="Database URL or SQLite file")
    parser.add_argument("--tables", type=Path, default=Path("config/tables.json"),
                       help="Table registration JSON")
    parser.add_argument("--limit", type=int, default=5,
                       help="Unregistered identifiers to list per table")

    args = parser.parse_args()

    if not args.tables.exists():
        print(f"❌ Table registration file not found: {args.tables}")
        sys.exit(1)

    try:
        success = validate(args.db, args.tables, limit=args.limit)
    except IdRegistryError as e:
        print(f"❌ Invalid table registration: {e}")
        sys.exit(1)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
