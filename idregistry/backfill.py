"""
Backfill engine.

Assigns identifiers to rows, or to composite-key groups of a vertical
table, that predate identifier tracking. Each call runs in one transaction
on the engine's session and works in bounded batches:

- Row-keyed tables: count rows missing an identifier, allocate up to
  max_batch identifiers, pair them with the first rows in key order,
  register them, update row by row. Repeat until nothing is missing.
- Vertical tables: first give every group without any labeled member a
  fresh identifier (one per group), then copy an existing group identifier
  onto members that are still unlabeled. Each pass repeats until it
  changes nothing; the first always runs before the second.

Already-labeled rows are never touched, so re-running is safe.
"""

from typing import Callable

from sqlalchemy.orm import Session

from .allocator import BatchAllocator
from .config import MAX_BATCH, MAX_COLLISION_RETRIES
from .descriptor import TableDescriptor
from .errors import DescriptorError, storage_errors
from .generator import IdentifierGenerator
from .logger import StructuredLogger, get_logger
from .probe import UniquenessProbe
from .registry import RegistryStore


class BackfillEngine:
    """Identifier allocation and backfill bound to one session."""

    def __init__(
        self,
        session: Session,
        generator: IdentifierGenerator = None,
        max_batch: int = MAX_BATCH,
        max_retries: int = MAX_COLLISION_RETRIES,
        logger: StructuredLogger = None,
    ):
        """
        Args:
            session: Session dedicated to this engine; it is committed or rolled back per call
            generator: Identifier source (default: IdentifierGenerator())
            max_batch: Rows or groups handled per pass, at most MAX_BATCH
            max_retries: Collision redraws before AllocationExhausted
            logger: Structured logger (default: global logger)
        """
        if max_batch < 1:
            raise ValueError(f"max_batch must be positive, got {max_batch}")
        self.session = session
        self.max_batch = min(max_batch, MAX_BATCH)
        self.logger = logger or get_logger()
        self.store = RegistryStore(session)
        self.allocator = BatchAllocator(
            UniquenessProbe(session, self.store),
            generator=generator,
            max_retries=max_retries,
            logger=self.logger,
        )

    def create_missing_identifiers(self, descriptor: TableDescriptor) -> int:
        """
        Backfill every row or group of the descriptor's table lacking an identifier.

        Args:
            descriptor: Owning table configuration

        Returns:
            Rows updated (row-keyed) or groups updated (vertical)

        Raises:
            DescriptorError: If the descriptor names no table
            StorageFailure, ConstraintViolation, AllocationExhausted: After rollback
        """
        if not descriptor.has_table:
            raise DescriptorError(["Backfill requires a table_name"])

        try:
            if descriptor.is_vertical:
                counter = self._drain(self._create_missing_groups, descriptor)
                counter += self._drain(self._complete_partial_groups, descriptor)
            else:
                counter = self._drain(self._create_missing_rows, descriptor)
            with storage_errors(f"commit backfill of {descriptor.table_name}"):
                self.session.commit()
        except Exception as e:
            self.session.rollback()
            self.logger.error(
                "Backfill rolled back",
                table=descriptor.table_name,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        self.logger.info(
            f"Backfill complete: {counter} updated in {descriptor.table_name}",
            table=descriptor.table_name,
            strategy=descriptor.strategy,
            updated=counter,
        )
        return counter

    def create_identifier(self, descriptor: TableDescriptor) -> bytes:
        """
        Allocate and register a single identifier, committing immediately.

        Args:
            descriptor: Table the identifier is for (may have no table)

        Returns:
            The new 16-byte identifier
        """
        try:
            identifier = self.allocator.allocate(1, descriptor)[0]
            if not descriptor.tracking_disabled:
                self.store.record_batch([identifier], descriptor)
            with storage_errors("commit identifier"):
                self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return identifier

    def _drain(self, step: Callable[[TableDescriptor], int], descriptor: TableDescriptor) -> int:
        total = 0
        while True:
            count = step(descriptor)
            if count == 0:
                return total
            total += count

    def _create_missing_rows(self, descriptor: TableDescriptor) -> int:
        table = descriptor.table_name
        id_column = descriptor.id_column_name
        ident_column = descriptor.identifier_column_name

        count = self.store.count_missing(table, id_column, ident_column)
        if count == 0:
            return 0

        batch_size = min(count, self.max_batch)
        identifiers = self.allocator.allocate(batch_size, descriptor)
        keys = self.store.fetch_missing_ids(table, id_column, batch_size, ident_column)
        identifiers = identifiers[:len(keys)]
        if not descriptor.tracking_disabled:
            self.store.record_batch(identifiers, descriptor)

        updated = 0
        for key, identifier in zip(keys, identifiers):
            updated += self.store.assign_row(table, id_column, key, identifier, ident_column)

        self.logger.record_rows_updated(updated)
        self.logger.debug("Row batch assigned", table=table, batch=batch_size, updated=updated)
        return updated

    def _create_missing_groups(self, descriptor: TableDescriptor) -> int:
        table = descriptor.table_name
        columns = descriptor.vertical_group_columns
        ident_column = descriptor.identifier_column_name

        groups = self.store.fetch_groups_without_identifier(table, columns, self.max_batch, ident_column)
        if not groups:
            return 0

        identifiers = self.allocator.allocate(len(groups), descriptor)
        if not descriptor.tracking_disabled:
            self.store.record_batch(identifiers, descriptor)

        updated = 0
        for key, identifier in zip(groups, identifiers):
            if self.store.assign_group(table, columns, key, identifier, ident_column) > 0:
                updated += 1

        self.logger.record_groups_created(updated)
        self.logger.debug("New groups labeled", table=table, groups=len(groups), updated=updated)
        return updated

    def _complete_partial_groups(self, descriptor: TableDescriptor) -> int:
        table = descriptor.table_name
        columns = descriptor.vertical_group_columns
        ident_column = descriptor.identifier_column_name

        pairs = self.store.fetch_partial_groups(table, columns, self.max_batch, ident_column)

        updated = 0
        for identifier, key in pairs:
            if self.store.assign_group(table, columns, key, identifier, ident_column) > 0:
                updated += 1

        self.logger.record_groups_completed(updated)
        if pairs:
            self.logger.debug("Partial groups completed", table=table, pairs=len(pairs), updated=updated)
        return updated
