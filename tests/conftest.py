"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Dict, List
from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, insert, select

from idregistry.database import get_engine, get_session, init_database
from idregistry.logger import StructuredLogger


@pytest.fixture
def db_path(tmp_path):
    """Initialized SQLite database file."""
    path = tmp_path / "test.db"
    init_database(path)
    return path


@pytest.fixture
def session(db_path):
    """Session on the test database."""
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    """Logger that writes nowhere but still tracks metrics."""
    return StructuredLogger(name="idregistry.test", enable_file=False, enable_console=False)


@pytest.fixture
def owned_tables(db_path) -> Dict[str, Table]:
    """Owning tables shaped like the ones identifiers get backfilled into."""
    metadata = MetaData()
    Table(
        "widgets", metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(50)),
        Column("uuid", LargeBinary(16)),
    )
    Table(
        "drugs", metadata,
        Column("drug_id", Integer, primary_key=True),
        Column("uuid", LargeBinary(16)),
    )
    Table(
        "facility_user_ids", metadata,
        Column("id", Integer, primary_key=True),
        Column("uid", Integer),
        Column("facility_id", Integer),
        Column("field_id", String(20)),
        Column("uuid", LargeBinary(16)),
    )
    Table(
        "documents", metadata,
        Column("id", Integer, primary_key=True),
        Column("uuid", LargeBinary(16)),
        Column("drive_uuid", LargeBinary(16)),
    )
    engine = get_engine(db_path)
    metadata.create_all(engine)
    engine.dispose()
    return dict(metadata.tables)


@pytest.fixture
def fill(session):
    """Insert rows into an owning table and commit."""
    def _fill(table: Table, rows: List[dict]) -> None:
        session.execute(insert(table), rows)
        session.commit()
    return _fill


@pytest.fixture
def identifiers_of(session):
    """Identifier column of every row of a table, in key order."""
    def _identifiers_of(table: Table, order_by: str = "id") -> list:
        return [row[0] for row in session.execute(select(table.c.uuid).order_by(table.c[order_by]))]
    return _identifiers_of
