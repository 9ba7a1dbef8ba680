import argparse
from pathlib import Path

from .env import load_env

from . import __version__
from .audit import DatabaseAuditSink, LoggingAuditSink
from .backfill import BackfillEngine
from .config import Settings, load_table_descriptors
from .database import get_session, get_session_factory, init_database
from .errors import ConfigError, DescriptorError, IdRegistryError, MalformedIdentifier
from .identifiers import is_valid_string, to_binary, to_canonical_string
from .logger import get_logger
from .maintenance import populate_all_missing_identifiers
from .registry import RegistryStore
from .schema import descriptor_from_dict


def _descriptors(args: argparse.Namespace, settings: Settings):
    tables_path = Path(args.tables) if args.tables else settings.tables_path
    if not tables_path.exists():
        raise SystemExit(f"Table registration file not found: {tables_path}")
    try:
        descriptors = load_table_descriptors(tables_path)
    except IdRegistryError as e:
        raise SystemExit(f"Invalid table registration: {e}")
    if getattr(args, "table", None):
        descriptors = [d for d in descriptors if d.table_name == args.table]
        if not descriptors:
            raise SystemExit(f"Table not registered: {args.table}")
    return descriptors


def cmd_init_db(args: argparse.Namespace, settings: Settings) -> None:
    init_database(args.db)
    print(f"Initialized registry tables in {args.db}")


def cmd_backfill(args: argparse.Namespace, settings: Settings) -> None:
    descriptors = _descriptors(args, settings)
    session_factory = get_session_factory(args.db)
    if args.audit == "db":
        sink = DatabaseAuditSink(session_factory)
    elif args.audit == "log":
        sink = LoggingAuditSink()
    else:
        sink = None

    report = populate_all_missing_identifiers(
        session_factory,
        descriptors,
        sink=sink,
        log=not args.no_log,
        max_batch=settings.max_batch,
    )
    for table, count in report.counts.items():
        print(f"[ok] {table}: {count}")
    for table, error in report.failures.items():
        print(f"[error] {table}: {error}")
    print(f"Done. assigned={report.total} tables={len(report.counts)} failed={len(report.failures)}")
    get_logger().log_metrics_summary()
    if not report.ok:
        raise SystemExit(1)


def cmd_create(args: argparse.Namespace, settings: Settings) -> None:
    data = {
        "table_name": args.table or "",
        "tracking_disabled": args.no_tracking,
        "is_document_drive": args.document_drive,
        "is_externally_mapped": args.mapped,
    }
    if args.id_column:
        data["id_column_name"] = args.id_column
    if args.vertical:
        data["vertical_group_columns"] = [c.strip() for c in args.vertical.split(",") if c.strip()]
    if args.namespace:
        data["external_namespace_tag"] = args.namespace
    try:
        descriptor = descriptor_from_dict(data, require_table=False)
    except DescriptorError as e:
        raise SystemExit(f"Invalid options: {e}")

    session = get_session(args.db)
    try:
        engine = BackfillEngine(session, max_retries=settings.max_collision_retries)
        identifier = engine.create_identifier(descriptor)
    except IdRegistryError as e:
        raise SystemExit(f"Allocation failed: {e}")
    finally:
        session.close()
    print(to_canonical_string(identifier))


def cmd_check(args: argparse.Namespace, settings: Settings) -> None:
    descriptors = _descriptors(args, settings)
    session = get_session(args.db)
    pending = 0
    try:
        store = RegistryStore(session)
        for descriptor in descriptors:
            try:
                needs = store.table_needs_identifiers(descriptor)
            except IdRegistryError as e:
                print(f"[error] {descriptor.table_name}: {e}")
                pending += 1
                continue
            if needs:
                pending += 1
                print(f"[missing] {descriptor.table_name}")
            else:
                print(f"[ok] {descriptor.table_name}")
    finally:
        session.close()
    if pending:
        raise SystemExit(1)


def cmd_convert(args: argparse.Namespace, settings: Settings) -> None:
    value = args.value.strip()
    try:
        if is_valid_string(value):
            print(to_binary(value).hex())
        else:
            print(to_canonical_string(bytes.fromhex(value)))
    except (MalformedIdentifier, ValueError):
        raise SystemExit(f"Not an identifier string or 32-digit hex value: {value}")


def cmd_validate(args: argparse.Namespace, settings: Settings) -> None:
    if not is_valid_string(args.value):
        print("Invalid")
        raise SystemExit(2)
    print("Valid")


def main():
    # Load .env if present (IDREGISTRY_DATABASE_URL, IDREGISTRY_LOG_LEVEL, etc.)
    load_env()
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    parser = argparse.ArgumentParser(prog="idregistry", description="Identifier registry and backfill")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    def add_db(p):
        p.add_argument("--db", default=settings.database_url, help=f"Database URL (default: {settings.database_url})")

    ini = subparsers.add_parser("init-db", help="Create the registry and audit tables")
    add_db(ini)
    ini.set_defaults(func=cmd_init_db)

    bkf = subparsers.add_parser("backfill", help="Assign identifiers to every registered table")
    add_db(bkf)
    bkf.add_argument("--tables", help=f"Table registration JSON (default: {settings.tables_path})")
    bkf.add_argument("--table", help="Only backfill this registered table")
    bkf.add_argument("--audit", choices=["db", "log", "none"], default="db", help="Where the summary event goes (default: db)")
    bkf.add_argument("--no-log", action="store_true", help="Do not emit the summary event")
    bkf.set_defaults(func=cmd_backfill)

    crt = subparsers.add_parser("create", help="Allocate and register a single identifier")
    add_db(crt)
    crt.add_argument("--table", help="Owning table to check uniqueness against")
    crt.add_argument("--id-column", help="Row key column of the owning table (default: id)")
    crt.add_argument("--vertical", help="Comma-separated group key columns of a vertical table")
    crt.add_argument("--namespace", help="External namespace tag")
    crt.add_argument("--no-tracking", action="store_true", help="Do not check or write the central registry")
    crt.add_argument("--document-drive", action="store_true", help="Identifier labels a document saved to drive")
    crt.add_argument("--mapped", action="store_true", help="Identifier is externally mapped")
    crt.set_defaults(func=cmd_create)

    chk = subparsers.add_parser("check", help="List registered tables with rows missing identifiers")
    add_db(chk)
    chk.add_argument("--tables", help=f"Table registration JSON (default: {settings.tables_path})")
    chk.set_defaults(func=cmd_check)

    cnv = subparsers.add_parser("convert", help="Convert between identifier string and hex bytes")
    cnv.add_argument("value", help="Canonical identifier string or 32 hex digits")
    cnv.set_defaults(func=cmd_convert)

    val = subparsers.add_parser("validate", help="Check that a value is a canonical identifier string")
    val.add_argument("value", help="Identifier string")
    val.set_defaults(func=cmd_validate)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args, settings)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
