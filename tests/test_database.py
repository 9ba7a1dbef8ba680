"""
Tests for database.py - registry schema and connections.
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from idregistry.database import (
    RegistryEntry,
    database_url,
    get_engine,
    get_session,
    init_database,
)


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)

        tables = inspect(get_engine(db_path)).get_table_names()
        assert "identifier_registry" in tables
        assert "audit_events" in tables

    def test_init_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "test.db"
        init_database(db_path)
        assert db_path.exists()

    def test_init_is_repeatable(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)
        init_database(db_path)


class TestDatabaseUrl:
    def test_path_becomes_sqlite_url(self, tmp_path):
        assert database_url(tmp_path / "a.db") == f"sqlite:///{tmp_path / 'a.db'}"

    def test_url_passes_through(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'sub' / 'b.db'}"
        assert database_url(url) == url
        assert (tmp_path / "sub").is_dir()

    def test_memory_url(self):
        assert database_url("sqlite:///:memory:") == "sqlite:///:memory:"


class TestRegistryEntry:
    def test_defaults(self, session):
        session.add(RegistryEntry(identifier=b"\x01" * 16))
        session.commit()

        entry = session.query(RegistryEntry).one()
        assert entry.table_name == ""
        assert entry.table_vertical == ""
        assert entry.document_drive == 0
        assert entry.created_at is not None

    def test_identifier_is_unique(self, db_path):
        session = get_session(db_path)
        session.add(RegistryEntry(identifier=b"\x02" * 16, table_name="users"))
        session.commit()

        session.add(RegistryEntry(identifier=b"\x02" * 16, table_name="drugs"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        session.close()
