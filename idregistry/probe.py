"""
Uniqueness probe.

Checks a candidate batch against the central registry and, when tracking is
disabled or the registry reports nothing, against the owning table itself.
Callers that opt out of central tracking still get local uniqueness.
"""

from typing import Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from .descriptor import TableDescriptor
from .errors import storage_errors
from .registry import RegistryStore

# Documents saved to drive are labelled through this column when no owning
# table is configured.
DOCUMENT_TABLE = "documents"
DOCUMENT_DRIVE_COLUMN = "drive_uuid"


class UniquenessProbe:
    def __init__(self, session: Session, store: RegistryStore = None):
        self.session = session
        self.store = store or RegistryStore(session)

    def find_existing(self, candidates: Sequence[bytes], descriptor: TableDescriptor) -> Set[bytes]:
        """
        Return the candidates that are already in use.

        Args:
            candidates: Identifiers about to be issued
            descriptor: Table the identifiers are for

        Returns:
            Subset of candidates found in the registry or the owning table
        """
        if not candidates:
            return set()

        existing: Set[bytes] = set()
        if not descriptor.tracking_disabled:
            existing = self.store.registered(candidates)
        if existing:
            return existing

        if descriptor.has_table:
            return self._in_column(candidates, descriptor.table_name, descriptor.identifier_column_name)
        if descriptor.is_document_drive:
            return self._in_column(candidates, DOCUMENT_TABLE, DOCUMENT_DRIVE_COLUMN)
        return set()

    def _in_column(self, candidates: Sequence[bytes], table: str, column: str) -> Set[bytes]:
        t = self.store.tables.table(table)
        col = self.store.tables.column(t, column)
        stmt = select(col).where(col.in_(list(candidates)))
        with storage_errors(f"check identifiers in {table}.{column}"):
            return {bytes(row[0]) for row in self.session.execute(stmt)}
