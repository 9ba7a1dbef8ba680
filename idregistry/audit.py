"""
Audit event sinks.

Maintenance runs report a single human-readable summary per sweep. Sinks
are fire-and-forget: a failing sink is logged and never interrupts the
caller.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import AuditEvent
from .logger import get_logger


class LoggingAuditSink:
    """Writes events to the structured log."""

    def new_event(self, event: str, comment: str, success: bool = True) -> None:
        logger = get_logger()
        if success:
            logger.info(comment, event=event)
        else:
            logger.warning(comment, event=event)


class DatabaseAuditSink:
    """Stores events in the audit_events table using its own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def new_event(self, event: str, comment: str, success: bool = True) -> None:
        session = self.session_factory()
        try:
            session.add(AuditEvent(event=event, success=success, comment=comment))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            get_logger().error("Failed to record audit event", event=event, error=str(e))
        finally:
            session.close()
