"""
Registry store.

The single source of truth for every identifier ever issued, plus the
queries the backfill engine runs against owning tables. Bound to one
session so every read and write shares the caller's transaction.
"""

import json
from datetime import datetime
from typing import Any, List, Sequence, Tuple

from sqlalchemy import func, insert, literal, select, update
from sqlalchemy.orm import Session

from .database import RegistryEntry
from .descriptor import TableDescriptor
from .errors import storage_errors
from .sql import TableCache, has_identifier, missing_identifier, same_key

GroupKey = Tuple[Any, ...]


class RegistryStore:
    """Registry writes and missing-identifier queries for one session."""

    def __init__(self, session: Session):
        self.session = session
        self.tables = TableCache(session)

    # Registry

    def record_batch(self, identifiers: Sequence[bytes], descriptor: TableDescriptor) -> None:
        """
        Insert one registry entry per identifier as a single statement.

        Args:
            identifiers: Freshly allocated identifiers
            descriptor: Table the identifiers were issued for

        Raises:
            ConstraintViolation: If any identifier is already registered (nothing is written)
            StorageFailure: On any other storage error
        """
        if not identifiers:
            return
        now = datetime.now()
        vertical = json.dumps(list(descriptor.vertical_group_columns)) if descriptor.is_vertical else ""
        rows = [
            {
                "identifier": identifier,
                "table_name": descriptor.table_name,
                "table_id_column": descriptor.id_column_name,
                "table_vertical": vertical,
                "external_namespace_tag": descriptor.external_namespace_tag,
                "document_drive": int(descriptor.is_document_drive),
                "externally_mapped": int(descriptor.is_externally_mapped),
                "created_at": now,
            }
            for identifier in identifiers
        ]
        with storage_errors(f"register {len(rows)} identifiers for {descriptor.table_name or 'untracked table'}"):
            self.session.execute(insert(RegistryEntry.__table__).values(rows))

    def registered(self, candidates: Sequence[bytes]) -> set:
        """Return the candidates that already have a registry entry."""
        if not candidates:
            return set()
        stmt = select(RegistryEntry.identifier).where(RegistryEntry.identifier.in_(list(candidates)))
        with storage_errors("query identifier registry"):
            return {bytes(row[0]) for row in self.session.execute(stmt)}

    # Row-keyed tables

    def count_missing(self, table: str, id_column: str, identifier_column: str = "uuid") -> int:
        t = self.tables.table(table)
        ident = self.tables.column(t, identifier_column)
        stmt = select(func.count(self.tables.column(t, id_column))).where(missing_identifier(ident))
        with storage_errors(f"count missing identifiers in {table}"):
            return self.session.execute(stmt).scalar_one()

    def fetch_missing_ids(
        self, table: str, id_column: str, limit: int, identifier_column: str = "uuid"
    ) -> List[Any]:
        """Row keys lacking an identifier, in key order."""
        t = self.tables.table(table)
        key = self.tables.column(t, id_column)
        ident = self.tables.column(t, identifier_column)
        stmt = select(key).where(key.is_not(None)).where(missing_identifier(ident)).order_by(key).limit(limit)
        with storage_errors(f"fetch rows missing identifiers in {table}"):
            return list(self.session.execute(stmt).scalars())

    def assign_row(
        self, table: str, id_column: str, key: Any, identifier: bytes, identifier_column: str = "uuid"
    ) -> int:
        t = self.tables.table(table)
        ident = self.tables.column(t, identifier_column)
        stmt = (
            update(t)
            .where(self.tables.column(t, id_column) == key)
            .where(missing_identifier(ident))
            .values({identifier_column: identifier})
        )
        with storage_errors(f"assign identifier in {table}"):
            return self.session.execute(stmt).rowcount

    # Vertical tables

    def fetch_groups_without_identifier(
        self, table: str, columns: Sequence[str], limit: int, identifier_column: str = "uuid"
    ) -> List[GroupKey]:
        """
        Group keys where no member row carries an identifier.

        Labeled groups are collected first and outer-joined against every
        row; rows whose key found no labeled group belong to a group that
        needs a fresh identifier.
        """
        t = self.tables.table(table)
        keys = [self.tables.column(t, c) for c in columns]
        ident = self.tables.column(t, identifier_column)

        labeled = (
            select(*keys, literal(1).label("labeled"))
            .where(has_identifier(ident))
            .group_by(*keys)
            .subquery("labeled_groups")
        )
        rows = t.alias("candidate_rows")
        row_keys = [rows.c[c] for c in columns]
        stmt = (
            select(*row_keys)
            .select_from(rows.outerjoin(labeled, same_key([labeled.c[c] for c in columns], row_keys)))
            .where(labeled.c["labeled"].is_(None))
            .where(missing_identifier(rows.c[identifier_column]))
            .group_by(*row_keys)
            .order_by(*row_keys)
            .limit(limit)
        )
        with storage_errors(f"fetch unlabeled groups in {table}"):
            return [tuple(row) for row in self.session.execute(stmt)]

    def fetch_partial_groups(
        self, table: str, columns: Sequence[str], limit: int, identifier_column: str = "uuid"
    ) -> List[Tuple[bytes, GroupKey]]:
        """
        (existing identifier, group key) pairs for groups with some unlabeled rows.

        Groups holding unlabeled rows are inner-joined with the labeled rows
        sharing their key.
        """
        t = self.tables.table(table)
        keys = [self.tables.column(t, c) for c in columns]
        ident = self.tables.column(t, identifier_column)

        unlabeled = (
            select(*keys)
            .where(missing_identifier(ident))
            .group_by(*keys)
            .subquery("unlabeled_groups")
        )
        rows = t.alias("labeled_rows")
        row_keys = [rows.c[c] for c in columns]
        row_ident = rows.c[identifier_column]
        stmt = (
            select(row_ident, *row_keys)
            .select_from(unlabeled.join(rows, same_key([unlabeled.c[c] for c in columns], row_keys)))
            .where(has_identifier(row_ident))
            .group_by(row_ident, *row_keys)
            .order_by(*row_keys, row_ident)
            .limit(limit)
        )
        with storage_errors(f"fetch partially labeled groups in {table}"):
            return [(bytes(row[0]), tuple(row[1:])) for row in self.session.execute(stmt)]

    def assign_group(
        self,
        table: str,
        columns: Sequence[str],
        key: GroupKey,
        identifier: bytes,
        identifier_column: str = "uuid",
    ) -> int:
        """Stamp every unlabeled row of a group; returns the number of rows changed."""
        t = self.tables.table(table)
        keys = [self.tables.column(t, c) for c in columns]
        ident = self.tables.column(t, identifier_column)
        stmt = (
            update(t)
            .where(same_key(keys, key))
            .where(missing_identifier(ident))
            .values({identifier_column: identifier})
        )
        with storage_errors(f"assign group identifier in {table}"):
            return self.session.execute(stmt).rowcount

    # Reporting

    def table_needs_identifiers(self, descriptor: TableDescriptor) -> bool:
        count = self.count_missing(
            descriptor.table_name, descriptor.id_column_name, descriptor.identifier_column_name
        )
        return count > 0

    def find_unregistered(self, descriptor: TableDescriptor, limit: int = 100) -> List[bytes]:
        """Identifiers present in the owning table without a registry entry."""
        t = self.tables.table(descriptor.table_name)
        ident = self.tables.column(t, descriptor.identifier_column_name)
        stmt = (
            select(ident)
            .select_from(t.outerjoin(RegistryEntry.__table__, RegistryEntry.identifier == ident))
            .where(has_identifier(ident))
            .where(RegistryEntry.identifier.is_(None))
            .group_by(ident)
            .order_by(ident)
            .limit(limit)
        )
        with storage_errors(f"find unregistered identifiers in {descriptor.table_name}"):
            return [bytes(row[0]) for row in self.session.execute(stmt)]
