"""
SQL building blocks shared by the probe and the registry store.

Owning tables are reflected, so column access goes through column objects
rather than formatted SQL text.
"""

from typing import Dict, Sequence

from sqlalchemy import Column, MetaData, Table, and_, func, or_
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from .errors import StorageFailure, storage_errors
from .identifiers import EMPTY_SENTINEL


def missing_identifier(column: Column) -> ColumnElement:
    """NULL, zero-length and the all-zero sentinel all mean "no identifier"."""
    return or_(column.is_(None), func.length(column) == 0, column == EMPTY_SENTINEL)


def has_identifier(column: Column) -> ColumnElement:
    return and_(column.is_not(None), func.length(column) > 0, column != EMPTY_SENTINEL)


def same_key(left: Sequence[Column], right: Sequence[object]) -> ColumnElement:
    """Null-safe equality across a composite key."""
    return and_(*[col.is_not_distinct_from(value) for col, value in zip(left, right)])


class TableCache:
    """Reflects owning tables once per session."""

    def __init__(self, session: Session):
        self.session = session
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    def table(self, name: str) -> Table:
        if name not in self._tables:
            with storage_errors(f"reflect table {name}"):
                self._tables[name] = Table(name, self._metadata, autoload_with=self.session.connection())
        return self._tables[name]

    def column(self, table: Table, name: str) -> Column:
        try:
            return table.c[name]
        except KeyError as e:
            raise StorageFailure(f"Column '{name}' not found in table '{table.name}'") from e
