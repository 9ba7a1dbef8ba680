"""
Database schema and connection management.

Uses SQLAlchemy for the identifier registry and the audit event table.
Owning tables are not modelled here; they are reflected at backfill time.
"""

from datetime import datetime
from pathlib import Path
from typing import Union

from sqlalchemy import Boolean, Column, DateTime, Integer, LargeBinary, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()

DatabaseTarget = Union[str, Path]


class RegistryEntry(Base):
    """One row per identifier ever issued."""

    __tablename__ = "identifier_registry"

    identifier = Column(LargeBinary(16), primary_key=True)
    table_name = Column(String(255), nullable=False, default="")
    table_id_column = Column(String(255), nullable=False, default="")
    table_vertical = Column(Text, nullable=False, default="")  # JSON array or ""
    external_namespace_tag = Column(String(255), nullable=False, default="")
    document_drive = Column(Integer, nullable=False, default=0)
    externally_mapped = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class AuditEvent(Base):
    """Human-readable maintenance events."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event = Column(String(64), nullable=False)
    success = Column(Boolean, nullable=False, default=True)
    comment = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def database_url(target: DatabaseTarget) -> str:
    """
    Resolve a database target to a SQLAlchemy URL.

    Args:
        target: Path to a SQLite database file, or a database URL
    """
    if isinstance(target, str) and "://" in target:
        url = make_url(target)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return target
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def get_engine(target: DatabaseTarget) -> Engine:
    return create_engine(database_url(target))


def init_database(target: DatabaseTarget) -> None:
    """
    Initialize database and create the registry tables.

    Args:
        target: Path to SQLite database file, or a database URL
    """
    engine = get_engine(target)
    Base.metadata.create_all(engine)


def get_session_factory(target: DatabaseTarget) -> sessionmaker:
    return sessionmaker(bind=get_engine(target))


def get_session(target: DatabaseTarget) -> Session:
    """
    Get database session.

    Args:
        target: Path to SQLite database file, or a database URL

    Returns:
        SQLAlchemy session
    """
    Session = get_session_factory(target)
    return Session()
