"""
Maintenance sweep over all registered tables.

Intended for the periodic job that keeps identifiers populated. Every table
is an independent invocation with its own session and transaction, so one
failing table does not affect the others.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import sessionmaker

from .backfill import BackfillEngine
from .config import MAX_BATCH
from .descriptor import TableDescriptor
from .logger import get_logger

AUDIT_EVENT = "uuid"


@dataclass
class MaintenanceReport:
    counts: Dict[str, int] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        """Comma separated 'added N identifiers to T' for tables that changed."""
        return ", ".join(
            f"added {count} identifiers to {table}"
            for table, count in self.counts.items()
            if count > 0
        )


def populate_all_missing_identifiers(
    session_factory: sessionmaker,
    descriptors: Iterable[TableDescriptor],
    sink=None,
    log: bool = True,
    max_batch: int = MAX_BATCH,
) -> MaintenanceReport:
    """
    Backfill identifiers for every registered table.

    Args:
        session_factory: Creates one session per table
        descriptors: Table registrations, processed in order
        sink: Audit sink receiving the summary (new_event); None to skip
        log: Emit the summary event when anything was added
        max_batch: Rows or groups per pass

    Returns:
        MaintenanceReport with per-table counts and failures
    """
    logger = get_logger()
    report = MaintenanceReport()

    for descriptor in descriptors:
        table = descriptor.table_name
        session = session_factory()
        try:
            engine = BackfillEngine(session, max_batch=max_batch, logger=logger)
            count = engine.create_missing_identifiers(descriptor)
            report.counts[table] = count
            logger.record_table_processed(table, count)
        except Exception as e:
            report.failures[table] = f"{type(e).__name__}: {e}"
            logger.record_table_failure(table, type(e).__name__)
            logger.error(f"Identifier backfill failed for {table}", table=table, error=str(e))
        finally:
            session.close()

    summary = report.summary()
    if log and sink is not None and summary:
        sink.new_event(AUDIT_EVENT, f"Automatic identifier service creation: {summary}")

    logger.info(
        f"Maintenance complete: {report.total} identifiers assigned, {len(report.failures)} tables failed",
        tables=len(report.counts) + len(report.failures),
        assigned=report.total,
        failed=sorted(report.failures),
    )
    return report
